"""
Suscripciones a cambios de las colecciones.

Los cambios se recogen en cada flush de la sesión y solo se publican cuando la
transacción hace commit; si hay rollback se descartan, así ningún suscriptor
ve estado no confirmado.
"""
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from sqlalchemy import event, inspect

from kegtrack.core.serialization_helpers import serialize_datetime


logger = logging.getLogger(__name__)

SUBSCRIBABLE = {"assets", "customers", "events", "users", "routes"}

_PENDING_KEY = "kegtrack_pending_changes"


class Change(NamedTuple):
    collection: str
    op: str  # "added", "modified" or "removed"
    id: Any
    data: Dict[str, Any]


def _snapshot(obj) -> Dict[str, Any]:
    data = {}
    for attr in inspect(obj).mapper.column_attrs:
        value = getattr(obj, attr.key)
        if isinstance(value, datetime):
            value = serialize_datetime(value)
        data[attr.key] = value
    return data


class Subscription:
    def __init__(self, feed: "ChangeFeed", collection: str, callback: Callable[[Change], None]):
        self._feed = feed
        self.collection = collection
        self.callback = callback
        self.active = True

    def close(self) -> None:
        if self.active:
            self.active = False
            self._feed._remove(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ChangeFeed:
    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()
        self._targets: list = []

    def attach(self, session_factory) -> None:
        """Escucha los eventos de las sesiones creadas por session_factory (sessionmaker)."""
        event.listen(session_factory, "after_flush", self._after_flush)
        event.listen(session_factory, "after_commit", self._after_commit)
        event.listen(session_factory, "after_rollback", self._after_rollback)
        self._targets.append(session_factory)

    def detach(self) -> None:
        for target in self._targets:
            event.remove(target, "after_flush", self._after_flush)
            event.remove(target, "after_commit", self._after_commit)
            event.remove(target, "after_rollback", self._after_rollback)
        self._targets = []

    def subscribe(self, collection: str, callback: Callable[[Change], None]) -> Subscription:
        if collection not in SUBSCRIBABLE:
            raise ValueError(f"Colección no suscribible: {collection}")
        subscription = Subscription(self, collection, callback)
        with self._lock:
            self._subscribers.setdefault(collection, []).append(subscription)
        return subscription

    def subscriber_count(self, collection: Optional[str] = None) -> int:
        with self._lock:
            if collection is not None:
                return len(self._subscribers.get(collection, []))
            return sum(len(subs) for subs in self._subscribers.values())

    def publish(self, change: Change) -> None:
        with self._lock:
            subscribers = list(self._subscribers.get(change.collection, []))
        for subscription in subscribers:
            if not subscription.active:
                continue
            try:
                subscription.callback(change)
            except Exception:
                # Un suscriptor roto no puede afectar al resto ni al commit
                logger.exception("Change subscriber failed for %s", change.collection)

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(subscription.collection, [])
            if subscription in subs:
                subs.remove(subscription)

    def _after_flush(self, session, flush_context) -> None:
        pending = session.info.setdefault(_PENDING_KEY, [])
        for op, objects in (("added", session.new), ("modified", session.dirty), ("removed", session.deleted)):
            for obj in objects:
                collection = getattr(obj, "__tablename__", None)
                if collection not in SUBSCRIBABLE:
                    continue
                if op == "modified" and not session.is_modified(obj):
                    continue
                data = _snapshot(obj)
                pending.append(Change(collection, op, data.get("id"), data))

    def _after_commit(self, session) -> None:
        changes = session.info.pop(_PENDING_KEY, [])
        for change in changes:
            self.publish(change)

    def _after_rollback(self, session) -> None:
        session.info.pop(_PENDING_KEY, None)
