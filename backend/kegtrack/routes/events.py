from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.audit import log_app_event
from kegtrack.core.database import get_db
from kegtrack.core.deps import get_current_user, require_admin
from kegtrack.core.errors import NotFound
from kegtrack.models.base import utcnow
from kegtrack.models.event import Event
from kegtrack.models.user import User
from kegtrack.services.history_service import (
    READ_DEGRADED_ERRORS,
    READ_REJECTED_ERRORS,
    EventFilters,
    event_history_page,
)
from kegtrack.services.query_service import empty_page_response


router = APIRouter()


class EventOut(BaseModel):
    id: str
    asset_id: str
    asset_code: str
    asset_type: str
    event_type: str
    event_label: str
    customer_id: str
    customer_name: str
    user_id: str
    timestamp: str
    variety: Optional[str]
    valve_type: Optional[str]
    days_at_customer: Optional[int]
    critical: bool


class PageError(BaseModel):
    code: str
    message: str


class EventPage(BaseModel):
    items: List[EventOut]
    next_cursor: Optional[str]
    prev_cursors: List[str]
    total: int
    approximate: bool
    request_id: Optional[str]
    error: Optional[PageError]


@router.get("/", response_model=EventPage)
def list_events(
    request: Request,
    background_tasks: BackgroundTasks,
    customer: Optional[str] = Query(None, description="Búsqueda parcial por nombre de cliente"),
    customer_id: Optional[str] = Query(None),
    asset_code: Optional[str] = Query(None, description="Búsqueda parcial por código"),
    asset_type: Optional[str] = Query(None, description="BARRIL o CO2"),
    event_type: Optional[str] = Query(None),
    critical_only: bool = Query(False),
    cursor: Optional[str] = Query(None),
    prev_cursors: List[str] = Query([]),
    request_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Historial de movimientos, del más reciente al más antiguo.
    request_id se devuelve tal cual para que el cliente descarte respuestas de filtros anteriores.
    """
    filters = EventFilters(
        customer=customer,
        customer_id=customer_id,
        asset_code=asset_code,
        asset_type=asset_type,
        event_type=event_type,
        critical_only=critical_only,
    )
    try:
        return event_history_page(db, filters, utcnow(), cursor, request_id, prev_cursors)
    except READ_DEGRADED_ERRORS as exc:
        background_tasks.add_task(log_app_event, "ERROR", exc.message, request.url.path, None, user.email)
        return empty_page_response(exc, request_id, prev_cursors)
    except READ_REJECTED_ERRORS as exc:
        return empty_page_response(exc, request_id, prev_cursors)


@router.delete("/{event_id}", status_code=204)
def delete_event(event_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Corrección de un evento registrado por error (solo Admin). No recalcula el activo."""
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFound(f"Evento {event_id} no encontrado")
    db.delete(event)
    db.commit()
