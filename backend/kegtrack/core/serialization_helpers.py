"""
Helpers genéricos de serialización y fechas.
NO contiene lógica de negocio, solo utilidades de formato.
"""
from datetime import datetime, timezone


def as_utc(value):
    """SQLite devuelve datetimes sin zona; se interpretan como UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_datetime(value):
    """Convierte datetime a string ISO (UTC) para serialización JSON"""
    if value is None:
        return None
    return as_utc(value).isoformat()


def parse_datetime(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value))
