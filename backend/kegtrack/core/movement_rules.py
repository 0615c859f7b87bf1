"""
Reglas de movimiento: vocabulario canónico de eventos y su efecto sobre un activo.

Cada tipo de evento define desde qué ubicaciones se permite, qué estado de llenado
y qué ubicación deja en el activo, si es una operación de llenado (acepta variedad)
y si cuenta como entrega a un cliente.
"""
from enum import Enum
from typing import Dict, FrozenSet, NamedTuple, Optional, Tuple

from kegtrack.core.errors import InvalidTransition, ValidationError


class AssetType(str, Enum):
    barril = "BARRIL"
    co2 = "CO2"


class FillState(str, Enum):
    lleno = "LLENO"
    vacio = "VACIO"


class Location(str, Enum):
    en_planta = "EN_PLANTA"
    en_reparto = "EN_REPARTO"
    en_cliente = "EN_CLIENTE"


class EventType(str, Enum):
    llenado_en_planta = "LLENADO_EN_PLANTA"
    salida_a_reparto = "SALIDA_A_REPARTO"
    entrega_a_cliente = "ENTREGA_A_CLIENTE"
    salida_vacio = "SALIDA_VACIO"
    recoleccion_de_cliente = "RECOLECCION_DE_CLIENTE"
    recepcion_en_planta = "RECEPCION_EN_PLANTA"
    devolucion = "DEVOLUCION"


class Transition(NamedTuple):
    allowed_from: FrozenSet[str]
    state: str
    location: str
    fill: bool
    delivery: bool


_PLANTA = Location.en_planta.value
_REPARTO = Location.en_reparto.value
_CLIENTE = Location.en_cliente.value
_LLENO = FillState.lleno.value
_VACIO = FillState.vacio.value

TRANSITIONS: Dict[str, Transition] = {
    "LLENADO_EN_PLANTA": Transition(frozenset({_PLANTA}), _LLENO, _PLANTA, fill=True, delivery=False),
    "SALIDA_A_REPARTO": Transition(frozenset({_PLANTA}), _LLENO, _CLIENTE, fill=True, delivery=True),
    "ENTREGA_A_CLIENTE": Transition(frozenset({_PLANTA, _REPARTO, _CLIENTE}), _LLENO, _CLIENTE, fill=False, delivery=True),
    "SALIDA_VACIO": Transition(frozenset({_PLANTA}), _VACIO, _CLIENTE, fill=False, delivery=True),
    "RECOLECCION_DE_CLIENTE": Transition(frozenset({_CLIENTE, _REPARTO}), _VACIO, _PLANTA, fill=False, delivery=False),
    "RECEPCION_EN_PLANTA": Transition(frozenset({_CLIENTE, _REPARTO}), _VACIO, _PLANTA, fill=False, delivery=False),
    "DEVOLUCION": Transition(frozenset({_CLIENTE, _REPARTO}), _LLENO, _PLANTA, fill=True, delivery=False),
}

# Vocabulario antiguo que todavía llega desde formularios y datos importados
LEGACY_ALIASES: Dict[str, str] = {
    "SALIDA_LLENO": "ENTREGA_A_CLIENTE",
    "DEVOLUCION_VACIO": "RECEPCION_EN_PLANTA",
    "ENTRADA_LLENO": "LLENADO_EN_PLANTA",
}

# status único (modelo antiguo) -> (estado, ubicación)
LEGACY_STATUS: Dict[str, Tuple[str, str]] = {
    "LLENO": (_LLENO, _PLANTA),
    "VACIO": (_VACIO, _PLANTA),
    "EN_PLANTA": (_VACIO, _PLANTA),
    "EN_CLIENTE": (_LLENO, _CLIENTE),
}

# Segundo paso -> evento que lo abre
PENDING_OPENERS: Dict[str, str] = {
    "ENTREGA_A_CLIENTE": "SALIDA_A_REPARTO",
    "RECEPCION_EN_PLANTA": "RECOLECCION_DE_CLIENTE",
}

EVENT_LABELS: Dict[str, str] = {
    "LLENADO_EN_PLANTA": "Llenar Activo",
    "SALIDA_A_REPARTO": "Salida a Reparto",
    "ENTREGA_A_CLIENTE": "Entrega a Cliente",
    "RECOLECCION_DE_CLIENTE": "Recolección de Cliente",
    "RECEPCION_EN_PLANTA": "Recepción en Planta",
    "SALIDA_VACIO": "Préstamo (Salida Vacío)",
    "DEVOLUCION": "Devolución (Lleno)",
}

DELIVERY_EVENT_TYPES: FrozenSet[str] = frozenset(t for t, rule in TRANSITIONS.items() if rule.delivery)
FILL_EVENT_TYPES: FrozenSet[str] = frozenset(t for t, rule in TRANSITIONS.items() if rule.fill)


def normalize_event_type(event_type: Optional[str]) -> str:
    """
    Devuelve el tipo canónico de un evento, resolviendo los alias antiguos.

    Raises:
        InvalidTransition: si el tipo no pertenece al vocabulario
    """
    value = (event_type or "").strip().upper()
    value = LEGACY_ALIASES.get(value, value)
    if value not in TRANSITIONS:
        raise InvalidTransition(f"Tipo de evento desconocido: {event_type}")
    return value


def transition_for(event_type: str, current_location: str) -> Transition:
    """
    Regla a aplicar para un evento sobre un activo en current_location.

    Raises:
        InvalidTransition: si el tipo es desconocido o no se permite desde la ubicación actual
    """
    canonical = normalize_event_type(event_type)
    rule = TRANSITIONS[canonical]
    if current_location not in rule.allowed_from:
        raise InvalidTransition(
            f"No se puede registrar {canonical} para un activo en {current_location}",
            {"event_type": canonical, "location": current_location, "allowed_from": sorted(rule.allowed_from)},
        )
    return rule


def split_legacy_status(status: str) -> Tuple[str, str]:
    """Traduce el status único del modelo antiguo a (estado, ubicación)."""
    try:
        return LEGACY_STATUS[status]
    except KeyError:
        raise ValidationError(f"Status desconocido: {status}")


def format_label(asset_type: str, fmt: str) -> str:
    """Etiqueta de formato para agrupar; los CO2 se distinguen de barriles con el mismo tamaño."""
    if asset_type == AssetType.co2.value:
        return f"CO2 {fmt}"
    return fmt
