from sqlalchemy import Column, Integer, String, DateTime

from kegtrack.models.base import Base, new_id, utcnow


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(20), primary_key=True, default=new_id)
    # Código legible (KEG-001, CO2-001); se asigna al crear y no cambia
    code = Column(String(20), nullable=False, unique=True, index=True)
    type = Column(String(10), nullable=False, index=True)  # "BARRIL" or "CO2"
    format = Column(String(50), nullable=False)

    # Dos dimensiones independientes: llenado y ubicación
    state = Column(String(10), nullable=False, default="VACIO")
    location = Column(String(20), nullable=False, default="EN_PLANTA", index=True)
    last_movement_at = Column(DateTime(timezone=True), nullable=True)

    # Solo barriles
    variety = Column(String(100), nullable=True)
    valve_type = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def status(self) -> str:
        return self.location
