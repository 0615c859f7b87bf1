from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.database import get_db
from kegtrack.core.deps import require_admin
from kegtrack.core.errors import NotFound
from kegtrack.core.serialization_helpers import serialize_datetime
from kegtrack.models.route import Route
from kegtrack.models.user import User


router = APIRouter()


class RouteAsset(BaseModel):
    asset_id: str
    asset_code: str


class RouteStop(BaseModel):
    customer_id: str
    customer_name: str
    assets: List[RouteAsset] = []


class RouteOut(BaseModel):
    id: str
    name: str
    status: str
    created_by: Optional[str]
    created_at: str
    stops: List[RouteStop]


def _serialize(route: Route) -> dict:
    return {
        "id": route.id,
        "name": route.name,
        "status": route.status,
        "created_by": route.created_by,
        "created_at": serialize_datetime(route.created_at),
        "stops": route.stops or [],
    }


@router.get("/", response_model=List[RouteOut])
def list_routes(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Hojas de ruta, de la más reciente a la más antigua"""
    routes = db.query(Route).order_by(Route.created_at.desc(), Route.id.desc()).all()
    return [_serialize(r) for r in routes]


@router.get("/{route_id}", response_model=RouteOut)
def get_route(route_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    route = db.query(Route).filter(Route.id == route_id).first()
    if not route:
        raise NotFound(f"Ruta {route_id} no encontrada")
    return _serialize(route)
