from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from kegtrack.core.config import settings
from kegtrack.core.database import get_db
from kegtrack.core.errors import PermissionDenied
from kegtrack.core.security import decode_token
from kegtrack.models.user import User
from kegtrack.core.roles import ADMIN_ROLES


def user_from_token(db: Session, token: str) -> Optional[User]:
    """
    Resuelve el usuario de un token del proveedor de identidad.
    El primer acceso crea el registro con el rol por defecto.
    """
    payload = decode_token(token)
    if not payload or not payload.get("sub"):
        return None
    user = db.query(User).filter(User.id == str(payload["sub"])).first()
    if not user:
        user = User(id=str(payload["sub"]), email=payload.get("email"), role=settings.default_role)
        db.add(user)
        db.commit()
        db.refresh(user)
    elif payload.get("email") and user.email != payload.get("email"):
        user.email = payload.get("email")
        db.commit()
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    authorization: Optional[str] = Header(None),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    user = user_from_token(db, token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    # Para los registros de auditoría
    request.state.user_email = user.email
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role not in {r.value for r in ADMIN_ROLES}:
        raise PermissionDenied("Se requiere el rol Admin para esta operación")
    return user


def get_change_feed(request: Request):
    return request.app.state.change_feed
