from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from kegtrack.core.config import settings


def create_token(subject: str, email: Optional[str] = None, expires_minutes: int = 60) -> str:
    """Firma un token con el mismo formato que emite el proveedor de identidad (tests y scripts locales)."""
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    payload: dict[str, Any] = {
        "sub": subject,
        "email": email,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    return jwt.encode(payload, settings.auth_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    try:
        return jwt.decode(token, settings.auth_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        return None
