import secrets
import string
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base


Base = declarative_base()

_ID_ALPHABET = string.ascii_letters + string.digits


def new_id() -> str:
    """Identificador opaco de 20 caracteres alfanuméricos (el mismo formato que leen las etiquetas QR)."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(20))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
