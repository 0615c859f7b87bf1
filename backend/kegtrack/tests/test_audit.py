from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from kegtrack.core import audit
from kegtrack.models import AppLog
from kegtrack.services import movement_service


class BrokenSession:
    """Sesión cuyo commit falla, como una base de logs caída."""

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def add(self, obj):
        pass

    def commit(self):
        raise OperationalError("INSERT INTO app_logs", {}, Exception("disk I/O error"))


def _broken_app_log(**kwargs):
    raise RuntimeError("app_logs unavailable")


def _always_stale(*args, **kwargs):
    raise StaleDataError("simulated")


def test_log_failure_is_swallowed():
    assert audit.log_app_event('ERROR', 'algo falló', '/events/', session_factory=BrokenSession) is None


def test_log_writes_entry(db):
    audit.log_app_event('WARNING', 'aviso', '/customers/', user_email='ana@cerveceria.test')
    entry = db.query(AppLog).one()
    assert (entry.level, entry.component, entry.user_email) == ('WARNING', '/customers/', 'ana@cerveceria.test')


def test_transaction_conflict_is_logged(client, auth_headers, keg, bar, db, monkeypatch):
    monkeypatch.setattr(movement_service, '_apply_movement', _always_stale)

    r = client.post('/movements/', json={
        'asset_id': keg.id,
        'event_type': 'SALIDA_A_REPARTO',
        'customer_id': bar.id,
    }, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()['code'] == 'transaction_conflict'

    entry = db.query(AppLog).filter(AppLog.component == '/movements/').one()
    assert entry.level == 'ERROR'
    assert entry.user_email == 'operador@cerveceria.test'


def test_broken_log_sink_does_not_change_responses(client, auth_headers, keg, bar, db, monkeypatch):
    monkeypatch.setattr(audit, 'AppLog', _broken_app_log)

    r = client.get('/events/', params={'customer_id': 'c1', 'event_type': 'DEVOLUCION'}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['error']['code'] == 'index_required'

    monkeypatch.setattr(movement_service, '_apply_movement', _always_stale)
    r = client.post('/movements/', json={
        'asset_id': keg.id,
        'event_type': 'SALIDA_A_REPARTO',
        'customer_id': bar.id,
    }, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()['code'] == 'transaction_conflict'

    assert db.query(AppLog).count() == 0
