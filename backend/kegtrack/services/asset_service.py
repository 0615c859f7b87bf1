"""
Alta, edición y baja de activos (barriles y cilindros de CO2).
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from kegtrack.core.code_service import generate_codes
from kegtrack.core.config import settings
from kegtrack.core.errors import NotFound, TransactionConflict, ValidationError
from kegtrack.core.movement_rules import (
    AssetType,
    FILL_EVENT_TYPES,
    FillState,
    Location,
    split_legacy_status,
)
from kegtrack.core.serialization_helpers import serialize_datetime
from kegtrack.models.asset import Asset
from kegtrack.models.event import Event
from kegtrack.services import projection_service


logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("code", "type")
PLANT_ONLY_FIELDS = ("format", "variety", "valve_type")


def _normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def _commit_asset(db: Session, asset_id: str, action: str) -> None:
    """Confirma la edición o baja; si un movimiento cambió la versión del activo antes, es conflicto."""
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Version conflict on asset %s while trying to %s", asset_id, action)
        raise TransactionConflict(
            f"El activo {asset_id} fue modificado por otro usuario; recarga e inténtalo de nuevo",
            {"asset_id": asset_id},
        ) from exc


def _resolve_state(state: Optional[str], location: Optional[str], status: Optional[str]):
    """Estado y ubicación iniciales; el status único del modelo antiguo también se acepta."""
    if status and not state and not location:
        return split_legacy_status(status)
    state = state or FillState.vacio.value
    location = location or Location.en_planta.value
    if state not in {s.value for s in FillState}:
        raise ValidationError(f"Estado inválido: {state}")
    if location not in {l.value for l in Location}:
        raise ValidationError(f"Ubicación inválida: {location}")
    return state, location


def _validate_type_and_format(asset_type: Optional[str], fmt: Optional[str]) -> str:
    if asset_type not in {t.value for t in AssetType}:
        raise ValidationError(f"Tipo de activo inválido: {asset_type}. Debe ser 'BARRIL' o 'CO2'")
    fmt = _normalize_text(fmt)
    if not fmt:
        raise ValidationError("El formato es obligatorio")
    return fmt


def _barrel_fields(asset_type: str, variety: Optional[str], valve_type: Optional[str]):
    variety = _normalize_text(variety)
    valve_type = _normalize_text(valve_type)
    if asset_type != AssetType.barril.value and (variety or valve_type):
        raise ValidationError("Variedad y tipo de válvula solo aplican a barriles")
    return variety, valve_type


def get_asset(db: Session, asset_id: str) -> Asset:
    asset = db.query(Asset).filter(Asset.id == asset_id).first()
    if not asset:
        raise NotFound(f"Activo {asset_id} no encontrado")
    return asset


def create_asset(
    db: Session,
    asset_type: str,
    fmt: str,
    state: Optional[str] = None,
    location: Optional[str] = None,
    status: Optional[str] = None,
    variety: Optional[str] = None,
    valve_type: Optional[str] = None,
) -> Asset:
    """
    Crea un activo con código generado (KEG-001, CO2-001...).

    Raises:
        ValidationError: tipo, formato, estado o ubicación inválidos
    """
    fmt = _validate_type_and_format(asset_type, fmt)
    state, location = _resolve_state(state, location, status)
    variety, valve_type = _barrel_fields(asset_type, variety, valve_type)

    code = generate_codes(db, asset_type, 1)[0]
    asset = Asset(
        code=code,
        type=asset_type,
        format=fmt,
        state=state,
        location=location,
        variety=variety,
        valve_type=valve_type,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    logger.info("Asset %s created (%s %s)", asset.code, asset_type, fmt)
    return asset


def create_batch(db: Session, asset_type: str, fmt: str, quantity: int) -> List[Asset]:
    """
    Crea quantity activos del mismo tipo y formato con códigos consecutivos.
    Se confirman todos juntos o ninguno.
    """
    if quantity < 1 or quantity > settings.max_batch_size:
        raise ValidationError(f"La cantidad debe estar entre 1 y {settings.max_batch_size}")
    fmt = _validate_type_and_format(asset_type, fmt)

    codes = generate_codes(db, asset_type, quantity)
    assets = [
        Asset(
            code=code,
            type=asset_type,
            format=fmt,
            state=FillState.vacio.value,
            location=Location.en_planta.value,
        )
        for code in codes
    ]
    db.add_all(assets)
    db.commit()
    for asset in assets:
        db.refresh(asset)
    logger.info("Batch of %s %s assets created (%s..%s)", quantity, asset_type, codes[0], codes[-1])
    return assets


def update_asset(db: Session, asset: Asset, changes: Dict[str, Any]) -> Asset:
    """
    Edición parcial. El código y el tipo no cambian nunca; formato, variedad y
    tipo de válvula solo se editan con el activo en planta.

    Raises:
        ValidationError: campo inmutable o activo fuera de planta
        TransactionConflict: un movimiento confirmado cambió el activo desde que se leyó
    """
    for field in IMMUTABLE_FIELDS:
        if field in changes and changes[field] is not None and changes[field] != getattr(asset, field):
            raise ValidationError(f"El campo {field} no se puede modificar")

    editable = {k: v for k, v in changes.items() if k in PLANT_ONLY_FIELDS}
    if not editable:
        return asset
    if asset.location != Location.en_planta.value:
        raise ValidationError("Solo se puede editar un activo que está en planta")

    if "format" in editable:
        fmt = _normalize_text(editable["format"])
        if not fmt:
            raise ValidationError("El formato es obligatorio")
        asset.format = fmt
    if "variety" in editable or "valve_type" in editable:
        variety, valve_type = _barrel_fields(
            asset.type, editable.get("variety"), editable.get("valve_type")
        )
        if "variety" in editable:
            asset.variety = variety
        if "valve_type" in editable:
            asset.valve_type = valve_type

    _commit_asset(db, asset.id, "update")
    db.refresh(asset)
    return asset


def delete_asset(db: Session, asset: Asset) -> None:
    """Borra el activo; sus eventos quedan en el historial."""
    asset_id, code = asset.id, asset.code
    db.delete(asset)
    _commit_asset(db, asset_id, "delete")
    logger.info("Asset %s deleted", code)


def last_variety(db: Session, asset: Asset) -> Optional[str]:
    """Variedad del llenado más reciente; si no hay ninguno, la guardada en el activo."""
    event = (
        db.query(Event)
        .filter(
            Event.asset_id == asset.id,
            Event.event_type.in_(FILL_EVENT_TYPES),
            Event.variety.isnot(None),
        )
        .order_by(Event.timestamp.desc(), Event.id.desc())
        .first()
    )
    if event:
        return event.variety
    return asset.variety


def public_info(db: Session, asset_id: str) -> Dict[str, Any]:
    """Datos mínimos para la etiqueta QR; no requiere autenticación."""
    asset = get_asset(db, asset_id)
    return {
        "id": asset.id,
        "code": asset.code,
        "type": asset.type,
        "format": asset.format,
        "variety": last_variety(db, asset) if asset.type == AssetType.barril.value else None,
    }


def serialize_asset(asset: Asset, now: datetime) -> Dict[str, Any]:
    return {
        "id": asset.id,
        "code": asset.code,
        "type": asset.type,
        "format": asset.format,
        "state": asset.state,
        "location": asset.location,
        "status": asset.status,
        "variety": asset.variety,
        "valve_type": asset.valve_type,
        "last_movement_at": serialize_datetime(asset.last_movement_at),
        "created_at": serialize_datetime(asset.created_at),
        "days_in_location": projection_service.days_in_location(asset, now),
        "critical": projection_service.is_critical(asset, now),
    }
