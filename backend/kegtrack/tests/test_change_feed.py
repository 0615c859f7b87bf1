import pytest

from kegtrack.core.database import SessionLocal
from kegtrack.models import Customer
from kegtrack.services.change_feed import ChangeFeed
from kegtrack.services.customer_service import create_customer
from kegtrack.services.movement_service import record_movement


@pytest.fixture
def feed():
    feed = ChangeFeed()
    feed.attach(SessionLocal)
    yield feed
    feed.detach()


def test_changes_are_published_after_commit(feed, db, keg, bar):
    received = []
    with feed.subscribe("events", received.append), feed.subscribe("assets", received.append):
        record_movement(db, keg.id, "SALIDA_A_REPARTO", bar.id, "operador-1")

    assert sorted((c.collection, c.op) for c in received) == [("assets", "modified"), ("events", "added")]
    asset_change = next(c for c in received if c.collection == "assets")
    assert asset_change.id == keg.id
    assert asset_change.data["location"] == "EN_CLIENTE"


def test_rolled_back_changes_are_not_published(feed, db):
    received = []
    with feed.subscribe("customers", received.append):
        db.add(Customer(name="Temporal"))
        db.flush()
        db.rollback()
    assert received == []


def test_leaving_the_context_unsubscribes(feed, db):
    received = []
    with feed.subscribe("customers", received.append) as subscription:
        create_customer(db, "Bar Uno")
        assert feed.subscriber_count("customers") == 1
    assert not subscription.active
    assert feed.subscriber_count("customers") == 0

    create_customer(db, "Bar Dos")
    assert [c.data["name"] for c in received] == ["Bar Uno"]


def test_failing_subscriber_does_not_block_others(feed, db):
    received = []

    def broken(change):
        raise RuntimeError("boom")

    with feed.subscribe("customers", broken), feed.subscribe("customers", received.append):
        customer = create_customer(db, "Bar Tres")
    assert [c.id for c in received] == [customer.id]


def test_unknown_collection_cannot_be_subscribed(feed):
    with pytest.raises(ValueError):
        feed.subscribe("app_logs", lambda change: None)
