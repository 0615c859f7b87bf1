from __future__ import annotations

import re
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from kegtrack.core.errors import NotFound, ValidationError
from kegtrack.models.customer import Customer


CUSTOMER_TYPES = ("BAR", "DISTRIBUIDOR", "OTRO")
MIN_PHONE_DIGITS = 9


def _normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def normalize_phones(phone: Optional[str]) -> Optional[str]:
    """
    Valida uno o varios teléfonos separados por coma.
    Cada uno debe tener al menos 9 dígitos (se ignoran espacios, guiones y '+').

    Returns:
        Los teléfonos limpios unidos por ", ", o None si no hay ninguno
    """
    phone = _normalize_text(phone)
    if not phone:
        return None
    numbers = [part.strip() for part in phone.split(",") if part.strip()]
    for number in numbers:
        if len(re.sub(r"\D", "", number)) < MIN_PHONE_DIGITS:
            raise ValidationError(f"Teléfono inválido: {number}. Debe tener al menos {MIN_PHONE_DIGITS} dígitos")
    return ", ".join(numbers)


def _validate_type(customer_type: Optional[str]) -> str:
    customer_type = (customer_type or "BAR").strip().upper()
    if customer_type not in CUSTOMER_TYPES:
        raise ValidationError(f"Tipo de cliente inválido: {customer_type}")
    return customer_type


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.query(Customer).filter(Customer.id == customer_id).first()
    if not customer:
        raise NotFound(f"Cliente {customer_id} no encontrado")
    return customer


def create_customer(
    db: Session,
    name: Optional[str],
    address: Optional[str] = None,
    contact: Optional[str] = None,
    phone: Optional[str] = None,
    customer_type: Optional[str] = None,
) -> Customer:
    normalized_name = _normalize_text(name)
    if not normalized_name:
        raise ValidationError("El nombre del cliente es obligatorio")

    customer = Customer(
        name=normalized_name,
        address=_normalize_text(address),
        contact=_normalize_text(contact),
        phone=normalize_phones(phone),
        type=_validate_type(customer_type),
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def update_customer(db: Session, customer: Customer, changes: Dict[str, Any]) -> Customer:
    """Actualización parcial: solo se tocan los campos presentes en changes."""
    if "name" in changes:
        normalized_name = _normalize_text(changes["name"])
        if not normalized_name:
            raise ValidationError("El nombre del cliente es obligatorio")
        customer.name = normalized_name
    if "address" in changes:
        customer.address = _normalize_text(changes["address"])
    if "contact" in changes:
        customer.contact = _normalize_text(changes["contact"])
    if "phone" in changes:
        customer.phone = normalize_phones(changes["phone"])
    if "type" in changes:
        if not (changes["type"] or "").strip():
            raise ValidationError("El tipo de cliente es obligatorio")
        customer.type = _validate_type(changes["type"])

    db.commit()
    db.refresh(customer)
    return customer


def delete_customer(db: Session, customer: Customer) -> None:
    # Los eventos guardan customer_id y customer_name como valores; el historial no se toca
    db.delete(customer)
    db.commit()
