"""
Registro de movimientos de activos.

Un movimiento agrega un evento al libro y actualiza el estado del activo en la
misma transacción: o se guardan ambos o ninguno.
"""
import logging
from typing import Optional, TypedDict

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from kegtrack.core.config import settings
from kegtrack.core.errors import (
    KegTrackError,
    NotFound,
    TransactionConflict,
    TransientStoreError,
    ValidationError,
)
from kegtrack.core.movement_rules import (
    AssetType,
    PENDING_OPENERS,
    Transition,
    normalize_event_type,
    transition_for,
)
from kegtrack.models.asset import Asset
from kegtrack.models.base import utcnow
from kegtrack.models.customer import Customer
from kegtrack.models.event import Event


logger = logging.getLogger(__name__)


class PendingMovement(TypedDict):
    """Cliente sugerido para el segundo paso de un movimiento en dos etapas."""
    event_id: str
    opened_by: str
    next_event_type: str
    customer_id: str
    customer_name: str


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _check_fill_fields(asset: Asset, rule: Transition, event_type: str,
                       variety: Optional[str], valve_type: Optional[str]) -> None:
    if not variety and not valve_type:
        return
    if asset.type != AssetType.barril.value:
        raise ValidationError("Variedad y tipo de válvula solo aplican a barriles")
    if not rule.fill:
        raise ValidationError(f"{event_type} no es una operación de llenado; no acepta variedad ni válvula")


def _apply_movement(db: Session, asset_id: str, event_type: str, customer_id: str, user_id: str,
                    variety: Optional[str], valve_type: Optional[str]) -> Event:
    # populate_existing: la validación usa siempre el estado confirmado más reciente
    asset = (
        db.query(Asset)
        .populate_existing()
        .with_for_update()
        .filter(Asset.id == asset_id)
        .first()
    )
    if not asset:
        raise NotFound(f"Activo {asset_id} no encontrado")

    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFound(f"Cliente {customer_id} no encontrado")

    rule = transition_for(event_type, asset.location)
    _check_fill_fields(asset, rule, event_type, variety, valve_type)

    timestamp = utcnow()
    event = Event(
        asset_id=asset.id,
        asset_code=asset.code,
        asset_type=asset.type,
        event_type=event_type,
        customer_id=customer.id,
        customer_name=customer.name,
        user_id=user_id,
        timestamp=timestamp,
        variety=variety,
        valve_type=valve_type,
    )
    db.add(event)

    asset.state = rule.state
    asset.location = rule.location
    asset.last_movement_at = timestamp
    if rule.fill:
        if variety:
            asset.variety = variety
        if valve_type:
            asset.valve_type = valve_type

    # El UPDATE comprueba la versión del activo; si otro escritor confirmó antes lanza StaleDataError
    db.flush()
    return event


def record_movement(
    db: Session,
    asset_id: str,
    event_type: str,
    customer_id: str,
    user_id: str,
    variety: Optional[str] = None,
    valve_type: Optional[str] = None,
) -> Event:
    """
    Registra un movimiento de un activo hacia o desde un cliente.

    Args:
        db: Sesión de base de datos
        asset_id: Activo que se mueve
        event_type: Tipo de evento (se aceptan los alias antiguos)
        customer_id: Cliente involucrado
        user_id: Usuario que registra el movimiento
        variety: Variedad de cerveza (solo barriles en operaciones de llenado)
        valve_type: Tipo de válvula (solo barriles en operaciones de llenado)

    Returns:
        El evento creado, ya confirmado

    Raises:
        InvalidTransition: tipo desconocido o no permitido desde la ubicación actual
        NotFound: el activo o el cliente no existen
        ValidationError: variedad/válvula en un activo u operación que no las admite
        TransactionConflict: conflicto de versión persistente tras los reintentos
        TransientStoreError: la base de datos no está disponible
    """
    canonical = normalize_event_type(event_type)
    variety = _clean(variety)
    valve_type = _clean(valve_type)

    attempts = max(settings.movement_max_retries, 1)
    for attempt in range(1, attempts + 1):
        try:
            event = _apply_movement(db, asset_id, canonical, customer_id, user_id, variety, valve_type)
            db.commit()
            logger.info("Movement %s recorded for asset %s (event %s)", canonical, asset_id, event.id)
            return event
        except StaleDataError:
            db.rollback()
            logger.warning("Version conflict on asset %s (attempt %s/%s)", asset_id, attempt, attempts)
        except KegTrackError:
            db.rollback()
            raise
        except DBAPIError as exc:
            db.rollback()
            logger.error("Store error recording movement for asset %s: %s", asset_id, exc)
            raise TransientStoreError("No se pudo registrar el movimiento; intenta de nuevo") from exc

    raise TransactionConflict(
        f"El activo {asset_id} fue modificado por otro usuario; no se pudo registrar {canonical}",
        {"asset_id": asset_id, "event_type": canonical, "attempts": attempts},
    )


def pending_movement_customer(db: Session, asset_id: str) -> Optional[PendingMovement]:
    """
    Si el último evento del activo abre un movimiento en dos pasos
    (SALIDA_A_REPARTO, RECOLECCION_DE_CLIENTE), devuelve su cliente para
    precargar el segundo paso. No modifica el evento anterior.
    """
    if not db.query(Asset.id).filter(Asset.id == asset_id).first():
        raise NotFound(f"Activo {asset_id} no encontrado")

    latest = (
        db.query(Event)
        .filter(Event.asset_id == asset_id)
        .order_by(Event.timestamp.desc(), Event.id.desc())
        .first()
    )
    if not latest:
        return None
    for second_step, opener in PENDING_OPENERS.items():
        if latest.event_type == opener:
            return {
                "event_id": latest.id,
                "opened_by": opener,
                "next_event_type": second_step,
                "customer_id": latest.customer_id,
                "customer_name": latest.customer_name,
            }
    return None
