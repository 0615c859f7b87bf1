import pytest

from kegtrack.core.errors import ValidationError
from kegtrack.models import Asset, Customer, Event
from kegtrack.services import asset_service, customer_service
from kegtrack.services.movement_service import record_movement
from kegtrack.services.seed import DEMO_ASSETS, DEMO_CUSTOMERS, seed_demo


def test_batch_creates_consecutive_codes(db):
    first = asset_service.create_asset(db, "CO2", "6kg")
    batch = asset_service.create_batch(db, "CO2", "10kg", 3)
    assert first.code == "CO2-001"
    assert [a.code for a in batch] == ["CO2-002", "CO2-003", "CO2-004"]
    assert {(a.state, a.location) for a in batch} == {("VACIO", "EN_PLANTA")}

    kegs = asset_service.create_batch(db, "BARRIL", "50L", 2)
    assert [a.code for a in kegs] == ["KEG-001", "KEG-002"]


@pytest.mark.parametrize("quantity", [0, 101])
def test_batch_quantity_bounds(db, quantity):
    with pytest.raises(ValidationError):
        asset_service.create_batch(db, "BARRIL", "50L", quantity)


def test_create_validates_type_and_legacy_status(db):
    with pytest.raises(ValidationError):
        asset_service.create_asset(db, "BOTELLA", "1L")
    with pytest.raises(ValidationError):
        asset_service.create_asset(db, "BARRIL", "  ")
    with pytest.raises(ValidationError):
        asset_service.create_asset(db, "CO2", "6kg", variety="IPA")

    asset = asset_service.create_asset(db, "BARRIL", "30L", status="EN_CLIENTE")
    assert (asset.state, asset.location) == ("LLENO", "EN_CLIENTE")


def test_code_and_type_are_immutable(db, keg):
    with pytest.raises(ValidationError):
        asset_service.update_asset(db, keg, {"code": "KEG-999"})
    with pytest.raises(ValidationError):
        asset_service.update_asset(db, keg, {"type": "CO2"})

    updated = asset_service.update_asset(db, keg, {"code": keg.code, "format": "30L", "variety": "Porter"})
    assert updated.format == "30L"
    assert updated.variety == "Porter"


def test_edits_only_while_at_plant(db, keg, bar):
    record_movement(db, keg.id, "SALIDA_VACIO", bar.id, "operador-1")
    db.refresh(keg)
    with pytest.raises(ValidationError):
        asset_service.update_asset(db, keg, {"format": "20L"})


def test_public_info_uses_latest_fill_variety(db, keg, bar):
    record_movement(db, keg.id, "LLENADO_EN_PLANTA", bar.id, "operador-1", variety="IPA")
    record_movement(db, keg.id, "SALIDA_A_REPARTO", bar.id, "operador-1", variety="Stout")
    info = asset_service.public_info(db, keg.id)
    assert info["code"] == "KEG-001"
    assert info["variety"] == "Stout"


def test_phone_validation():
    assert customer_service.normalize_phones(" +56 9 1234 5678 , 987654321 ") == "+56 9 1234 5678, 987654321"
    assert customer_service.normalize_phones("") is None
    with pytest.raises(ValidationError):
        customer_service.normalize_phones("12345678")
    with pytest.raises(ValidationError):
        customer_service.normalize_phones("987654321, 123")


def test_customer_requires_name_and_valid_type(db):
    with pytest.raises(ValidationError):
        customer_service.create_customer(db, "   ")
    with pytest.raises(ValidationError):
        customer_service.create_customer(db, "Bar", customer_type="RESTAURANTE")


def test_partial_update_keeps_other_fields(db, bar):
    updated = customer_service.update_customer(db, bar, {"contact": "Juan Pérez"})
    assert updated.contact == "Juan Pérez"
    assert updated.name == "Bar La Esquina"
    assert updated.phone == "+56 9 1234 5678"
    with pytest.raises(ValidationError):
        customer_service.update_customer(db, bar, {"name": ""})


def test_deleting_customer_keeps_events(db, keg, bar):
    event = record_movement(db, keg.id, "SALIDA_A_REPARTO", bar.id, "operador-1")
    customer_id = bar.id

    customer_service.delete_customer(db, bar)

    assert db.query(Customer).filter(Customer.id == customer_id).first() is None
    stored = db.query(Event).filter(Event.id == event.id).one()
    assert stored.customer_id == customer_id
    assert stored.customer_name == "Bar La Esquina"


def test_seed_is_idempotent(db):
    seed_demo(db)
    seed_demo(db)

    assert db.query(Asset).count() == len(DEMO_ASSETS)
    assert db.query(Customer).count() == len(DEMO_CUSTOMERS)
    delivered = db.query(Event).filter(Event.event_type == "ENTREGA_A_CLIENTE").all()
    assert {e.user_id for e in delivered} == {"seed"}
    assert len(delivered) == sum(1 for _, _, status in DEMO_ASSETS if status == "EN_CLIENTE")


def test_event_snapshot_survives_later_edits(db, keg, bar):
    record_movement(db, keg.id, "SALIDA_A_REPARTO", bar.id, "operador-1")
    record_movement(db, keg.id, "RECOLECCION_DE_CLIENTE", bar.id, "operador-1")
    db.refresh(keg)

    customer_service.update_customer(db, bar, {"name": "Nuevo"})
    asset_service.update_asset(db, keg, {"format": "20L"})

    events = db.query(Event).filter(Event.asset_id == keg.id).all()
    assert len(events) == 2
    assert {e.customer_name for e in events} == {"Bar La Esquina"}
    assert {e.asset_code for e in events} == {"KEG-001"}
    assert {e.asset_type for e in events} == {"BARRIL"}
    assert keg.format == "20L"
    assert bar.name == "Nuevo"


@pytest.mark.parametrize("value", [None, "  "])
def test_customer_type_is_required_on_update(db, distributor, value):
    with pytest.raises(ValidationError):
        customer_service.update_customer(db, distributor, {"type": value})
    db.refresh(distributor)
    assert distributor.type == "DISTRIBUIDOR"
