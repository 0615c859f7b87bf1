from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from kegtrack.core.database import get_db
from kegtrack.core.deps import get_current_user, require_admin
from kegtrack.models.asset import Asset
from kegtrack.models.base import utcnow
from kegtrack.models.user import User
from kegtrack.services import asset_service


router = APIRouter()


class AssetCreate(BaseModel):
    type: str
    format: str
    state: Optional[str] = None
    location: Optional[str] = None
    # Status único del modelo antiguo (LLENO, VACIO, EN_PLANTA, EN_CLIENTE)
    status: Optional[str] = None
    variety: Optional[str] = None
    valve_type: Optional[str] = None


class AssetBatchCreate(BaseModel):
    type: str
    format: str
    quantity: int = Field(..., description="Entre 1 y 100")


class AssetUpdate(BaseModel):
    code: Optional[str] = None
    type: Optional[str] = None
    format: Optional[str] = None
    variety: Optional[str] = None
    valve_type: Optional[str] = None


class AssetOut(BaseModel):
    id: str
    code: str
    type: str
    format: str
    state: str
    location: str
    status: str
    variety: Optional[str]
    valve_type: Optional[str]
    last_movement_at: Optional[str]
    created_at: Optional[str]
    days_in_location: Optional[int]
    critical: bool

    class Config:
        from_attributes = True


class AssetPublicOut(BaseModel):
    id: str
    code: str
    type: str
    format: str
    variety: Optional[str]


@router.get("/", response_model=List[AssetOut])
def list_assets(
    type: Optional[str] = Query(None, description="BARRIL o CO2"),
    location: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = db.query(Asset)
    if type:
        query = query.filter(Asset.type == type)
    if location:
        query = query.filter(Asset.location == location)
    if state:
        query = query.filter(Asset.state == state)
    now = utcnow()
    return [asset_service.serialize_asset(a, now) for a in query.order_by(Asset.code.asc()).all()]


@router.post("/", response_model=AssetOut, status_code=201)
def create_asset(data: AssetCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    asset = asset_service.create_asset(
        db,
        data.type,
        data.format,
        state=data.state,
        location=data.location,
        status=data.status,
        variety=data.variety,
        valve_type=data.valve_type,
    )
    return asset_service.serialize_asset(asset, utcnow())


@router.post("/batch", response_model=List[AssetOut], status_code=201)
def create_batch(data: AssetBatchCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    assets = asset_service.create_batch(db, data.type, data.format, data.quantity)
    now = utcnow()
    return [asset_service.serialize_asset(a, now) for a in assets]


@router.get("/{asset_id}/public", response_model=AssetPublicOut)
def public_asset(asset_id: str, db: Session = Depends(get_db)):
    """Información de la etiqueta QR (sin autenticación)"""
    return asset_service.public_info(db, asset_id)


@router.get("/{asset_id}", response_model=AssetOut)
def get_asset(asset_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return asset_service.serialize_asset(asset_service.get_asset(db, asset_id), utcnow())


@router.put("/{asset_id}", response_model=AssetOut)
def update_asset(
    asset_id: str,
    data: AssetUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    asset = asset_service.get_asset(db, asset_id)
    asset = asset_service.update_asset(db, asset, data.model_dump(exclude_unset=True))
    return asset_service.serialize_asset(asset, utcnow())


@router.delete("/{asset_id}", status_code=204)
def delete_asset(asset_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    asset_service.delete_asset(db, asset_service.get_asset(db, asset_id))
