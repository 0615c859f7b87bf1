from sqlalchemy import Column, String, DateTime, Index

from kegtrack.models.base import Base, new_id, utcnow


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("ix_customers_name_id", "name", "id"),
        Index("ix_customers_type_name_id", "type", "name", "id"),
    )

    id = Column(String(20), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    contact = Column(String(255), nullable=True)
    # Uno o varios teléfonos separados por coma
    phone = Column(String(255), nullable=True)
    type = Column(String(20), nullable=False, default="BAR")  # BAR, DISTRIBUIDOR, OTRO
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=utcnow)
