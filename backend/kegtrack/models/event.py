from sqlalchemy import Column, String, DateTime, Index, event

from kegtrack.models.base import Base, new_id


class Event(Base):
    """
    Registro inmutable del libro de movimientos.
    asset_code, asset_type y customer_name son copias tomadas al escribir,
    no referencias: el historial sigue legible aunque el activo o el cliente cambien o se borren.
    """
    __tablename__ = "events"
    # Cada combinación de filtros que se resuelve en el servidor necesita su índice
    __table_args__ = (
        Index("ix_events_timestamp_id", "timestamp", "id"),
        Index("ix_events_event_type_timestamp_id", "event_type", "timestamp", "id"),
        Index("ix_events_asset_type_timestamp_id", "asset_type", "timestamp", "id"),
        Index("ix_events_asset_type_event_type_timestamp_id", "asset_type", "event_type", "timestamp", "id"),
        Index("ix_events_customer_id_timestamp_id", "customer_id", "timestamp", "id"),
        Index("ix_events_asset_id_timestamp_id", "asset_id", "timestamp", "id"),
    )

    id = Column(String(20), primary_key=True, default=new_id)
    asset_id = Column(String(20), nullable=False)
    asset_code = Column(String(20), nullable=False)
    asset_type = Column(String(10), nullable=False)
    event_type = Column(String(30), nullable=False)
    customer_id = Column(String(20), nullable=False)
    customer_name = Column(String(255), nullable=False)
    user_id = Column(String(128), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    variety = Column(String(100), nullable=True)
    valve_type = Column(String(50), nullable=True)


@event.listens_for(Event, "before_update")
def block_event_update(mapper, connection, target):
    """Los eventos no se editan; una corrección es borrar (Admin) y registrar de nuevo."""
    raise ValueError("Event records are immutable")
