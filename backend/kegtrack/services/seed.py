import logging

from sqlalchemy.orm import Session

from kegtrack.models.asset import Asset
from kegtrack.services.asset_service import create_asset
from kegtrack.services.customer_service import create_customer
from kegtrack.services.movement_service import record_movement


logger = logging.getLogger(__name__)

SEED_USER_ID = "seed"

# (tipo, formato, status antiguo)
DEMO_ASSETS = [
    ("BARRIL", "50L", "LLENO"),
    ("BARRIL", "50L", "EN_PLANTA"),
    ("BARRIL", "30L", "VACIO"),
    ("BARRIL", "30L", "EN_CLIENTE"),
    ("BARRIL", "20L", "LLENO"),
    ("CO2", "6kg", "LLENO"),
    ("CO2", "6kg", "EN_CLIENTE"),
    ("CO2", "10kg", "VACIO"),
]

DEMO_CUSTOMERS = [
    {"name": "Bar La Esquina", "customer_type": "BAR", "address": "Av. Siempre Viva 123", "contact": "Juan Pérez"},
    {"name": "Distribuidora del Sur", "customer_type": "DISTRIBUIDOR", "address": "Calle Falsa 456", "contact": "Ana Gómez"},
    {"name": "El Refugio Cervecero", "customer_type": "BAR", "address": "Ruta 7 km 8", "contact": "Carlos Ruiz"},
    {"name": "Otro Cliente", "customer_type": "OTRO", "address": "Desconocida", "contact": "Misterio"},
]


def seed_demo(db: Session) -> None:
    if db.query(Asset.id).first():
        return

    customers = [create_customer(db, **data) for data in DEMO_CUSTOMERS]
    for asset_type, fmt, status in DEMO_ASSETS:
        if status == "EN_CLIENTE":
            # Se entregan con un evento para que el resumen por cliente los atribuya
            asset = create_asset(db, asset_type, fmt, status="LLENO")
            record_movement(db, asset.id, "ENTREGA_A_CLIENTE", customers[0].id, SEED_USER_ID)
        else:
            create_asset(db, asset_type, fmt, status=status)
    logger.info("Demo data seeded: %s assets, %s customers", len(DEMO_ASSETS), len(customers))
