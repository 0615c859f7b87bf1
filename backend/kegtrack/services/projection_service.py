"""
Proyecciones derivadas del libro de movimientos.

Funciones puras sobre listas de activos y eventos: no leen ni escriben la base
de datos, de modo que recalcular con las mismas entradas da siempre el mismo
resultado. Solo dashboard_metrics y load_snapshot consultan la sesión.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from kegtrack.core.config import settings
from kegtrack.core.movement_rules import DELIVERY_EVENT_TYPES, EventType, Location, format_label
from kegtrack.core.serialization_helpers import as_utc
from kegtrack.models.asset import Asset
from kegtrack.models.customer import Customer
from kegtrack.models.event import Event


def _event_key(event) -> Tuple[datetime, str]:
    return as_utc(event.timestamp), event.id


def days_in_location(asset, now: datetime) -> Optional[int]:
    """Días completos que lleva el activo en el cliente; None si no está en un cliente."""
    if asset.location != Location.en_cliente.value or asset.last_movement_at is None:
        return None
    elapsed = as_utc(now) - as_utc(asset.last_movement_at)
    return max(elapsed // timedelta(days=1), 0)


def is_critical(asset, now: datetime, threshold_days: Optional[int] = None) -> bool:
    threshold = settings.critical_days if threshold_days is None else threshold_days
    days = days_in_location(asset, now)
    return days is not None and days >= threshold


def latest_event_by_asset(events: Iterable) -> Dict[str, object]:
    latest: Dict[str, object] = {}
    for event in events:
        current = latest.get(event.asset_id)
        if current is None or _event_key(event) > _event_key(current):
            latest[event.asset_id] = event
    return latest


def latest_delivery_by_asset(events: Iterable) -> Dict[str, object]:
    return latest_event_by_asset(e for e in events if e.event_type in DELIVERY_EVENT_TYPES)


def current_holdings(assets: Iterable, events: Iterable) -> Dict[str, Dict]:
    """
    Activos que cada cliente tiene ahora, agrupados por etiqueta de formato.

    Un activo en EN_CLIENTE se atribuye al cliente de su entrega más reciente;
    si no tiene ninguna entrega registrada no se atribuye a nadie.

    Returns:
        {customer_id: {"holdings": {"50L": 2, "CO2 6kg": 1}, "total": 3}}
    """
    latest = latest_delivery_by_asset(events)
    result: Dict[str, Dict] = {}
    for asset in assets:
        if asset.location != Location.en_cliente.value:
            continue
        delivery = latest.get(asset.id)
        if delivery is None:
            continue
        entry = result.setdefault(delivery.customer_id, {"holdings": {}, "total": 0})
        label = format_label(asset.type, asset.format)
        entry["holdings"][label] = entry["holdings"].get(label, 0) + 1
        entry["total"] += 1
    return result


def historical_asset_counts(events: Iterable) -> Dict[str, int]:
    """Número de activos distintos que alguna vez estuvieron asociados a cada cliente."""
    seen = defaultdict(set)
    for event in events:
        seen[event.customer_id].add(event.asset_id)
    return {customer_id: len(asset_ids) for customer_id, asset_ids in seen.items()}


def customer_summary(assets: Iterable, events: Iterable, customers: Optional[Iterable] = None) -> List[Dict]:
    events = list(events)
    holdings = current_holdings(assets, events)
    history = historical_asset_counts(events)

    names: Dict[str, str] = {}
    for event in sorted(events, key=_event_key):
        names[event.customer_id] = event.customer_name
    for customer in customers or []:
        names[customer.id] = customer.name

    rows = []
    for customer_id in set(holdings) | set(history):
        held = holdings.get(customer_id, {"holdings": {}, "total": 0})
        rows.append({
            "customer_id": customer_id,
            "customer_name": names.get(customer_id, customer_id),
            "holdings": dict(sorted(held["holdings"].items())),
            "total": held["total"],
            "historical_total": history.get(customer_id, 0),
        })
    rows.sort(key=lambda row: (row["customer_name"].lower(), row["customer_id"]))
    return rows


def carry_forward_fill(events: Iterable, fill_events: Iterable) -> Dict[str, Tuple[Optional[str], Optional[str]]]:
    """
    Variedad y tipo de válvula vigentes en cada evento: los del llenado más
    reciente del mismo activo en o antes del evento.

    Returns:
        {event_id: (variety, valve_type)}
    """
    fills_by_asset = defaultdict(list)
    for fill in fill_events:
        if fill.event_type == EventType.llenado_en_planta.value:
            fills_by_asset[fill.asset_id].append(fill)
    for fills in fills_by_asset.values():
        fills.sort(key=_event_key)

    result: Dict[str, Tuple[Optional[str], Optional[str]]] = {}
    for event in events:
        key = _event_key(event)
        last_fill = next(
            (fill for fill in reversed(fills_by_asset.get(event.asset_id, [])) if _event_key(fill) <= key),
            None,
        )
        if last_fill is None:
            result[event.id] = (event.variety, event.valve_type)
        else:
            # Lo del llenado manda; lo anotado en el propio evento solo completa lo que falte
            result[event.id] = (
                last_fill.variety or event.variety,
                last_fill.valve_type or event.valve_type,
            )
    return result


def load_snapshot(db: Session) -> Tuple[List[Asset], List[Event], List[Customer]]:
    return db.query(Asset).all(), db.query(Event).all(), db.query(Customer).all()


def dashboard_metrics(db: Session, now: datetime) -> Dict[str, int]:
    """Conteos del tablero; el de críticos es exacto porque se resuelve en el servidor."""
    by_location = dict(
        db.query(Asset.location, func.count(Asset.id)).group_by(Asset.location).all()
    )
    threshold = as_utc(now) - timedelta(days=settings.critical_days)
    critical = db.query(func.count(Asset.id)).filter(
        Asset.location == Location.en_cliente.value,
        Asset.last_movement_at <= threshold,
    ).scalar() or 0
    return {
        "total_assets": sum(by_location.values()),
        "en_planta": by_location.get(Location.en_planta.value, 0),
        "en_reparto": by_location.get(Location.en_reparto.value, 0),
        "en_cliente": by_location.get(Location.en_cliente.value, 0),
        "critical": critical,
        "total_customers": db.query(func.count(Customer.id)).scalar() or 0,
    }
