"""
Historial de eventos y listado de clientes sobre FilteredQuery.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from kegtrack.core.config import settings
from kegtrack.core.errors import IndexRequired, InvalidTransition, TransientStoreError, ValidationError
from kegtrack.core.movement_rules import (
    DELIVERY_EVENT_TYPES,
    EVENT_LABELS,
    EventType,
    Location,
    normalize_event_type,
)
from kegtrack.core.serialization_helpers import serialize_datetime
from kegtrack.models.asset import Asset
from kegtrack.models.customer import Customer
from kegtrack.models.event import Event
from kegtrack.services import projection_service
from kegtrack.services.query_service import (
    FilteredQuery,
    page_response,
)


def _as_flag(value: Any) -> bool:
    """critical_only llega como bool desde HTTP y puede llegar como texto por websocket."""
    if value is None or isinstance(value, bool):
        return bool(value)
    text = str(value).strip().lower()
    if text in ("true", "1"):
        return True
    if text in ("false", "0", ""):
        return False
    raise ValidationError(f"Valor inválido para critical_only: {value}", {"critical_only": value})


@dataclass
class EventFilters:
    customer: Optional[str] = None
    customer_id: Optional[str] = None
    asset_code: Optional[str] = None
    asset_type: Optional[str] = None
    event_type: Optional[str] = None
    critical_only: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EventFilters":
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError("Los filtros deben ser un objeto")
        return cls(
            customer=data.get("customer") or None,
            customer_id=data.get("customer_id") or None,
            asset_code=data.get("asset_code") or None,
            asset_type=data.get("asset_type") or None,
            event_type=data.get("event_type") or None,
            critical_only=_as_flag(data.get("critical_only")),
        )


@dataclass
class CustomerFilters:
    name: Optional[str] = None
    type: Optional[str] = None


def _contains(needle: str):
    needle = needle.strip().lower()
    return lambda value: needle in (value or "").lower()


def _critical_event_ids(db: Session, now: datetime) -> set:
    """Ids de las entregas que son el último evento de un activo crítico."""
    critical_assets = [
        asset.id
        for asset in db.query(Asset).filter(Asset.location == Location.en_cliente.value).all()
        if projection_service.is_critical(asset, now)
    ]
    if not critical_assets:
        return set()
    events = db.query(Event).filter(Event.asset_id.in_(critical_assets)).all()
    latest = projection_service.latest_event_by_asset(events)
    return {event.id for event in latest.values() if event.event_type in DELIVERY_EVENT_TYPES}


def build_event_query(db: Session, filters: EventFilters, now: datetime,
                      page_size: Optional[int] = None) -> FilteredQuery:
    query = FilteredQuery(
        Event,
        sort_column="timestamp",
        descending=True,
        page_size=page_size or settings.events_page_size,
    )
    query.where_equal("customer_id", filters.customer_id)
    query.where_equal("asset_type", filters.asset_type)
    if filters.event_type:
        try:
            event_type = normalize_event_type(filters.event_type)
        except InvalidTransition as exc:
            raise ValidationError(exc.message, {"event_type": filters.event_type}) from exc
        query.where_equal("event_type", event_type)

    if filters.customer:
        matches = _contains(filters.customer)
        query.where_client(lambda event: matches(event.customer_name))
    if filters.asset_code:
        matches_code = _contains(filters.asset_code)
        query.where_client(lambda event: matches_code(event.asset_code))
    if filters.critical_only:
        critical_ids = _critical_event_ids(db, now)
        query.where_client(lambda event: event.id in critical_ids)
    return query


def serialize_events(db: Session, events: List[Event], now: datetime) -> List[Dict[str, Any]]:
    """Eventos con etiqueta, días en cliente y variedad arrastrada desde el último llenado."""
    if not events:
        return []
    asset_ids = {event.asset_id for event in events}
    assets = {asset.id: asset for asset in db.query(Asset).filter(Asset.id.in_(asset_ids)).all()}
    asset_events = db.query(Event).filter(Event.asset_id.in_(asset_ids)).all()
    latest = projection_service.latest_event_by_asset(asset_events)
    fills = [e for e in asset_events if e.event_type == EventType.llenado_en_planta.value]
    fill_info = projection_service.carry_forward_fill(events, fills)

    rows = []
    for event in events:
        asset = assets.get(event.asset_id)
        days = None
        critical = False
        # Los días solo tienen sentido en la entrega que dejó el activo donde está
        is_current = latest.get(event.asset_id) is not None and latest[event.asset_id].id == event.id
        if asset is not None and is_current and event.event_type in DELIVERY_EVENT_TYPES:
            days = projection_service.days_in_location(asset, now)
            critical = projection_service.is_critical(asset, now)
        variety, valve_type = fill_info.get(event.id, (event.variety, event.valve_type))
        rows.append({
            "id": event.id,
            "asset_id": event.asset_id,
            "asset_code": event.asset_code,
            "asset_type": event.asset_type,
            "event_type": event.event_type,
            "event_label": EVENT_LABELS.get(event.event_type, event.event_type),
            "customer_id": event.customer_id,
            "customer_name": event.customer_name,
            "user_id": event.user_id,
            "timestamp": serialize_datetime(event.timestamp),
            "variety": variety,
            "valve_type": valve_type,
            "days_at_customer": days,
            "critical": critical,
        })
    return rows


def event_history_page(db: Session, filters: EventFilters, now: datetime, cursor: Optional[str] = None,
                       request_id: Optional[str] = None, prev_cursors: Optional[List[str]] = None,
                       page_size: Optional[int] = None) -> Dict[str, Any]:
    """Página del historial ordenada del evento más reciente al más antiguo."""
    query = build_event_query(db, filters, now, page_size)
    page = query.page(db, cursor)
    return page_response(page, serialize_events(db, page.items, now), request_id, prev_cursors)


def build_customer_query(filters: CustomerFilters, page_size: Optional[int] = None) -> FilteredQuery:
    query = FilteredQuery(
        Customer,
        sort_column="name",
        descending=False,
        page_size=page_size or settings.customers_page_size,
    )
    query.where_equal("type", filters.type)
    if filters.name:
        matches = _contains(filters.name)
        query.where_client(lambda customer: matches(customer.name))
    return query


def serialize_customer(customer: Customer) -> Dict[str, Any]:
    return {
        "id": customer.id,
        "name": customer.name,
        "address": customer.address,
        "contact": customer.contact,
        "phone": customer.phone,
        "type": customer.type,
        "created_at": serialize_datetime(customer.created_at),
        "updated_at": serialize_datetime(customer.updated_at),
    }


def customer_page(db: Session, filters: CustomerFilters, cursor: Optional[str] = None,
                  request_id: Optional[str] = None, prev_cursors: Optional[List[str]] = None,
                  page_size: Optional[int] = None) -> Dict[str, Any]:
    query = build_customer_query(filters, page_size)
    page = query.page(db, cursor)
    return page_response(page, [serialize_customer(c) for c in page.items], request_id, prev_cursors)


READ_DEGRADED_ERRORS = (IndexRequired, TransientStoreError)
# Filtros o cursor inválidos: página vacía con el error, sin pasar por app_logs
READ_REJECTED_ERRORS = (ValidationError,)
