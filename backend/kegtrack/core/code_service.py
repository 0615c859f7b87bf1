"""
Servicio centralizado para generación de códigos de activo.
Maneja la secuencia por prefijo (KEG, CO2) usando CodeCounter.
"""
from sqlalchemy.orm import Session

from kegtrack.core.errors import ValidationError
from kegtrack.models.code_counter import CodeCounter


PREFIX_MAP = {
    'BARRIL': 'KEG',
    'CO2': 'CO2',
}


def reserve_code_seqs(db: Session, prefix: str, count: int = 1) -> int:
    """
    Reserva count números consecutivos para un prefijo.
    Crea el contador si no existe.

    Usa with_for_update() para evitar condiciones de carrera en entornos concurrentes.
    NO hace commit - el caller debe hacer commit después de asignar los códigos.

    Args:
        db: Sesión de base de datos
        prefix: Prefijo del código ('KEG', 'CO2')
        count: Cantidad de números a reservar

    Returns:
        Primer número de la secuencia reservada
    """
    counter = db.query(CodeCounter).filter(
        CodeCounter.prefix == prefix
    ).with_for_update().first()

    if not counter:
        counter = CodeCounter(prefix=prefix, next_seq=1)
        db.add(counter)
        db.flush()

    first_seq = counter.next_seq
    counter.next_seq += count
    return first_seq


def format_code(prefix: str, seq: int) -> str:
    """KEG-001, KEG-002 ... KEG-1000 (mínimo tres dígitos)."""
    return f"{prefix}-{str(seq).zfill(3)}"


def generate_codes(db: Session, asset_type: str, count: int = 1) -> list[str]:
    """
    Genera count códigos consecutivos para un tipo de activo.

    Args:
        db: Sesión de base de datos
        asset_type: 'BARRIL' o 'CO2'
        count: Cantidad de códigos

    Returns:
        Códigos generados (ej: ['KEG-001', 'KEG-002'])
    """
    if asset_type not in PREFIX_MAP:
        raise ValidationError(f"Tipo de activo inválido: {asset_type}. Debe ser 'BARRIL' o 'CO2'")

    prefix = PREFIX_MAP[asset_type]
    first = reserve_code_seqs(db, prefix, count)
    return [format_code(prefix, seq) for seq in range(first, first + count)]
