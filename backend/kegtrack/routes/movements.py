from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.database import get_db
from kegtrack.core.deps import get_current_user
from kegtrack.core.movement_rules import EVENT_LABELS
from kegtrack.core.serialization_helpers import serialize_datetime
from kegtrack.models.user import User
from kegtrack.services.movement_service import pending_movement_customer, record_movement


router = APIRouter()


class MovementCreate(BaseModel):
    asset_id: str
    event_type: str
    customer_id: str
    variety: Optional[str] = None
    valve_type: Optional[str] = None


class MovementOut(BaseModel):
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


class PendingMovementOut(BaseModel):
    event_id: str
    opened_by: str
    next_event_type: str
    customer_id: str
    customer_name: str


@router.post("/", response_model=MovementOut, status_code=201)
def create_movement(data: MovementCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Registra un movimiento y actualiza el activo en la misma transacción"""
    event = record_movement(
        db,
        data.asset_id,
        data.event_type,
        data.customer_id,
        user.id,
        variety=data.variety,
        valve_type=data.valve_type,
    )
    return {
        "id": event.id,
        "asset_id": event.asset_id,
        "asset_code": event.asset_code,
        "asset_type": event.asset_type,
        "event_type": event.event_type,
        "event_label": EVENT_LABELS[event.event_type],
        "customer_id": event.customer_id,
        "customer_name": event.customer_name,
        "user_id": event.user_id,
        "timestamp": serialize_datetime(event.timestamp),
        "variety": event.variety,
        "valve_type": event.valve_type,
    }


@router.get("/pending/{asset_id}", response_model=Optional[PendingMovementOut])
def get_pending_movement(asset_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Cliente a precargar cuando el activo tiene un movimiento en dos pasos abierto (o null)"""
    return pending_movement_customer(db, asset_id)
