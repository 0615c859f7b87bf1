from sqlalchemy import Column, String, DateTime, JSON

from kegtrack.models.base import Base, new_id, utcnow


class Route(Base):
    __tablename__ = "routes"

    id = Column(String(20), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="PENDIENTE")  # PENDIENTE, EN_PROGRESO, COMPLETADA
    created_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    # [{"customer_id", "customer_name", "assets": [{"asset_id", "asset_code"}]}]
    stops = Column(JSON, nullable=False, default=list)
