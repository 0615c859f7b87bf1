import pytest

from kegtrack.core.errors import InvalidTransition, ValidationError
from kegtrack.core.movement_rules import (
    DELIVERY_EVENT_TYPES,
    FILL_EVENT_TYPES,
    TRANSITIONS,
    format_label,
    normalize_event_type,
    split_legacy_status,
    transition_for,
)


@pytest.mark.parametrize("event_type,location,state", [
    ("LLENADO_EN_PLANTA", "EN_PLANTA", "LLENO"),
    ("SALIDA_A_REPARTO", "EN_CLIENTE", "LLENO"),
    ("ENTREGA_A_CLIENTE", "EN_CLIENTE", "LLENO"),
    ("SALIDA_VACIO", "EN_CLIENTE", "VACIO"),
    ("RECOLECCION_DE_CLIENTE", "EN_PLANTA", "VACIO"),
    ("RECEPCION_EN_PLANTA", "EN_PLANTA", "VACIO"),
    ("DEVOLUCION", "EN_PLANTA", "LLENO"),
])
def test_each_event_type_derives_state_and_location(event_type, location, state):
    rule = TRANSITIONS[event_type]
    assert rule.location == location
    assert rule.state == state


def test_legacy_aliases_normalize_to_canonical_types():
    assert normalize_event_type("SALIDA_LLENO") == "ENTREGA_A_CLIENTE"
    assert normalize_event_type("DEVOLUCION_VACIO") == "RECEPCION_EN_PLANTA"
    assert normalize_event_type("ENTRADA_LLENO") == "LLENADO_EN_PLANTA"
    assert normalize_event_type(" salida_a_reparto ") == "SALIDA_A_REPARTO"


def test_unknown_event_type_is_invalid_transition():
    with pytest.raises(InvalidTransition):
        normalize_event_type("TELETRANSPORTE")
    with pytest.raises(InvalidTransition):
        normalize_event_type(None)


def test_transition_rejects_disallowed_source_location():
    with pytest.raises(InvalidTransition) as exc:
        transition_for("SALIDA_A_REPARTO", "EN_CLIENTE")
    assert exc.value.detail["location"] == "EN_CLIENTE"

    with pytest.raises(InvalidTransition):
        transition_for("RECOLECCION_DE_CLIENTE", "EN_PLANTA")

    assert transition_for("ENTREGA_A_CLIENTE", "EN_REPARTO").location == "EN_CLIENTE"


def test_delivery_and_fill_sets():
    assert DELIVERY_EVENT_TYPES == {"SALIDA_A_REPARTO", "ENTREGA_A_CLIENTE", "SALIDA_VACIO"}
    assert FILL_EVENT_TYPES == {"LLENADO_EN_PLANTA", "SALIDA_A_REPARTO", "DEVOLUCION"}


def test_legacy_status_mapping():
    assert split_legacy_status("LLENO") == ("LLENO", "EN_PLANTA")
    assert split_legacy_status("VACIO") == ("VACIO", "EN_PLANTA")
    assert split_legacy_status("EN_PLANTA") == ("VACIO", "EN_PLANTA")
    assert split_legacy_status("EN_CLIENTE") == ("LLENO", "EN_CLIENTE")
    with pytest.raises(ValidationError):
        split_legacy_status("PERDIDO")


def test_format_label_distinguishes_co2():
    assert format_label("BARRIL", "50L") == "50L"
    assert format_label("CO2", "6kg") == "CO2 6kg"
