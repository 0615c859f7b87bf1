from typing import Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.database import get_db
from kegtrack.core.deps import get_current_user
from kegtrack.models.base import utcnow
from kegtrack.models.user import User
from kegtrack.services import projection_service


router = APIRouter()


class MetricsOut(BaseModel):
    total_assets: int
    en_planta: int
    en_reparto: int
    en_cliente: int
    critical: int
    total_customers: int


class CustomerSummaryOut(BaseModel):
    customer_id: str
    customer_name: str
    holdings: Dict[str, int]
    total: int
    historical_total: int


@router.get("/metrics", response_model=MetricsOut)
def get_metrics(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return projection_service.dashboard_metrics(db, utcnow())


@router.get("/customers", response_model=List[CustomerSummaryOut])
def get_customer_summary(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Activos que tiene cada cliente ahora (por formato) y cuántos distintos ha tenido en total"""
    assets, events, customers = projection_service.load_snapshot(db)
    return projection_service.customer_summary(assets, events, customers)
