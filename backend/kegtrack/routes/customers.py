from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from kegtrack.core.audit import log_app_event
from kegtrack.core.database import get_db
from kegtrack.core.deps import get_current_user, require_admin
from kegtrack.models.user import User
from kegtrack.services import customer_service
from kegtrack.services.history_service import (
    READ_DEGRADED_ERRORS,
    READ_REJECTED_ERRORS,
    CustomerFilters,
    customer_page,
    serialize_customer,
)
from kegtrack.services.query_service import empty_page_response


router = APIRouter()


class CustomerCreate(BaseModel):
    name: str
    address: Optional[str] = None
    contact: Optional[str] = None
    phone: Optional[str] = None
    type: Optional[str] = "BAR"


class CustomerUpdate(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None
    contact: Optional[str] = None
    phone: Optional[str] = None
    type: Optional[str] = None


class CustomerOut(BaseModel):
    id: str
    name: str
    address: Optional[str]
    contact: Optional[str]
    phone: Optional[str]
    type: str
    created_at: Optional[str]
    updated_at: Optional[str]

    class Config:
        from_attributes = True


class PageError(BaseModel):
    code: str
    message: str


class CustomerPage(BaseModel):
    items: List[CustomerOut]
    next_cursor: Optional[str]
    prev_cursors: List[str]
    total: int
    approximate: bool
    request_id: Optional[str]
    error: Optional[PageError]


@router.get("/", response_model=CustomerPage)
def list_customers(
    request: Request,
    background_tasks: BackgroundTasks,
    name: Optional[str] = Query(None, description="Búsqueda parcial por nombre"),
    type: Optional[str] = Query(None, description="BAR, DISTRIBUIDOR u OTRO"),
    cursor: Optional[str] = Query(None),
    prev_cursors: List[str] = Query([]),
    request_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """
    Lista paginada de clientes ordenada por nombre.
    Si la lectura falla se devuelve una página vacía con el error en lugar de un 4xx/5xx.
    """
    filters = CustomerFilters(name=name, type=type)
    try:
        return customer_page(db, filters, cursor, request_id, prev_cursors)
    except READ_DEGRADED_ERRORS as exc:
        background_tasks.add_task(log_app_event, "ERROR", exc.message, request.url.path, None, user.email)
        return empty_page_response(exc, request_id, prev_cursors)
    except READ_REJECTED_ERRORS as exc:
        return empty_page_response(exc, request_id, prev_cursors)


@router.post("/", response_model=CustomerOut, status_code=201)
def create_customer(data: CustomerCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    customer = customer_service.create_customer(
        db,
        data.name,
        address=data.address,
        contact=data.contact,
        phone=data.phone,
        customer_type=data.type,
    )
    return serialize_customer(customer)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return serialize_customer(customer_service.get_customer(db, customer_id))


@router.put("/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: str,
    data: CustomerUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    customer = customer_service.get_customer(db, customer_id)
    customer = customer_service.update_customer(db, customer, data.model_dump(exclude_unset=True))
    return serialize_customer(customer)


@router.delete("/{customer_id}", status_code=204)
def delete_customer(customer_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    customer_service.delete_customer(db, customer_service.get_customer(db, customer_id))
