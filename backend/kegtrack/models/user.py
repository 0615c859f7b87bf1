from sqlalchemy import Column, String, DateTime

from kegtrack.models.base import Base, utcnow


class User(Base):
    __tablename__ = "users"

    # Subject (sub) del token emitido por el proveedor de identidad
    id = Column(String(128), primary_key=True)
    email = Column(String(255), index=True, nullable=True)
    role = Column(String(20), nullable=False, default="Operador")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
