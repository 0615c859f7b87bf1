from kegtrack.core.security import create_token
from kegtrack.models import AppLog, Route


def test_health(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json() == {'status': 'ok'}


def test_requires_token(client):
    assert client.get('/assets/').status_code == 401
    assert client.get('/assets/', headers={'Authorization': 'Bearer nope'}).status_code == 401


def test_first_request_provisions_operator(client, auth_headers):
    r = client.get('/users/me', headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['role'] == 'Operador'
    assert r.json()['email'] == 'operador@cerveceria.test'


def test_register_movement_and_read_history(client, auth_headers):
    r = client.post('/customers/', json={'name': 'Bar La Esquina', 'phone': '912345678'}, headers=auth_headers)
    assert r.status_code == 201
    customer = r.json()

    r = client.post('/assets/', json={'type': 'BARRIL', 'format': '50L'}, headers=auth_headers)
    assert r.status_code == 201
    asset = r.json()
    assert asset['code'] == 'KEG-001'
    assert asset['status'] == 'EN_PLANTA'

    r = client.post('/movements/', json={
        'asset_id': asset['id'],
        'event_type': 'SALIDA_A_REPARTO',
        'customer_id': customer['id'],
        'variety': 'IPA',
    }, headers=auth_headers)
    assert r.status_code == 201
    assert r.json()['event_label'] == 'Salida a Reparto'

    r = client.get(f"/assets/{asset['id']}", headers=auth_headers)
    assert r.json()['state'] == 'LLENO'
    assert r.json()['location'] == 'EN_CLIENTE'
    assert r.json()['days_in_location'] == 0

    r = client.get(f"/movements/pending/{asset['id']}", headers=auth_headers)
    assert r.json()['customer_id'] == customer['id']

    r = client.get('/events/', params={'request_id': 'req-7'}, headers=auth_headers)
    page = r.json()
    assert page['request_id'] == 'req-7'
    assert page['total'] == 1
    assert page['error'] is None
    assert page['items'][0]['asset_code'] == 'KEG-001'

    r = client.get('/overview/customers', headers=auth_headers)
    assert r.json() == [{
        'customer_id': customer['id'],
        'customer_name': 'Bar La Esquina',
        'holdings': {'50L': 1},
        'total': 1,
        'historical_total': 1,
    }]

    r = client.get('/overview/metrics', headers=auth_headers)
    assert r.json()['en_cliente'] == 1

    r = client.get(f"/assets/{asset['id']}/public")
    assert r.status_code == 200
    assert r.json()['variety'] == 'IPA'


def test_invalid_transition_is_conflict(client, auth_headers):
    customer = client.post('/customers/', json={'name': 'Bar'}, headers=auth_headers).json()
    asset = client.post('/assets/', json={'type': 'CO2', 'format': '6kg'}, headers=auth_headers).json()
    r = client.post('/movements/', json={
        'asset_id': asset['id'],
        'event_type': 'DEVOLUCION',
        'customer_id': customer['id'],
    }, headers=auth_headers)
    assert r.status_code == 409
    assert r.json()['code'] == 'invalid_transition'


def test_validation_errors(client, auth_headers):
    r = client.post('/customers/', json={'name': 'Bar', 'phone': '1234'}, headers=auth_headers)
    assert r.status_code == 422
    assert r.json()['code'] == 'validation_error'

    r = client.post('/assets/batch', json={'type': 'BARRIL', 'format': '50L', 'quantity': 101}, headers=auth_headers)
    assert r.status_code == 422

    r = client.get('/customers/no-existe', headers=auth_headers)
    assert r.status_code == 404


def test_deletes_are_admin_only(client, auth_headers, admin_headers):
    customer = client.post('/customers/', json={'name': 'Bar'}, headers=auth_headers).json()

    r = client.delete(f"/customers/{customer['id']}", headers=auth_headers)
    assert r.status_code == 403
    assert r.json()['code'] == 'permission_denied'

    r = client.delete(f"/customers/{customer['id']}", headers=admin_headers)
    assert r.status_code == 204


def test_index_required_degrades_to_empty_page_and_is_logged(client, auth_headers, admin_headers, db):
    r = client.get('/events/', params={'customer_id': 'c1', 'event_type': 'DEVOLUCION'}, headers=auth_headers)
    assert r.status_code == 200
    page = r.json()
    assert page['items'] == []
    assert page['error']['code'] == 'index_required'

    assert db.query(AppLog).filter(AppLog.component == '/events/').count() == 1

    r = client.get('/logs/', headers=admin_headers)
    assert r.status_code == 200
    assert r.json()[0]['user_email'] == 'operador@cerveceria.test'


def test_admin_changes_roles(client, auth_headers, admin_headers):
    client.get('/users/me', headers=auth_headers)
    r = client.put('/users/operador-1/role', json={'role': 'Admin'}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()['role'] == 'Admin'

    r = client.put('/users/operador-1/role', json={'role': 'Jefe'}, headers=admin_headers)
    assert r.status_code == 422


def test_live_assets_stream(client, auth_headers):
    customer = client.post('/customers/', json={'name': 'Bar'}, headers=auth_headers).json()
    asset = client.post('/assets/', json={'type': 'BARRIL', 'format': '50L'}, headers=auth_headers).json()

    token = create_token('operador-1', email='operador@cerveceria.test')
    with client.websocket_connect(f'/live/assets?token={token}') as ws:
        assert ws.receive_json() == {'type': 'ready', 'collection': 'assets'}
        client.post('/movements/', json={
            'asset_id': asset['id'],
            'event_type': 'ENTREGA_A_CLIENTE',
            'customer_id': customer['id'],
        }, headers=auth_headers)
        message = ws.receive_json()
        assert message['type'] == 'change'
        assert message['op'] == 'modified'
        assert message['id'] == asset['id']
        assert message['data']['location'] == 'EN_CLIENTE'


def test_live_history_last_filter_wins(client, auth_headers):
    customer = client.post('/customers/', json={'name': 'Bar'}, headers=auth_headers).json()
    asset = client.post('/assets/', json={'type': 'CO2', 'format': '6kg'}, headers=auth_headers).json()
    client.post('/movements/', json={
        'asset_id': asset['id'],
        'event_type': 'ENTREGA_A_CLIENTE',
        'customer_id': customer['id'],
    }, headers=auth_headers)

    token = create_token('operador-1', email='operador@cerveceria.test')
    with client.websocket_connect(f'/live/history?token={token}') as ws:
        first = ws.receive_json()
        assert first['type'] == 'page'
        assert first['total'] == 1

        ws.send_json({'type': 'filters', 'filters': {'asset_type': 'BARRIL'}, 'request_id': 'r2'})
        page = ws.receive_json()
        assert page['generation'] > first['generation']
        assert page['request_id'] == 'r2'
        assert page['items'] == []


def test_live_requires_token(client):
    with client.websocket_connect('/live/assets') as ws:
        message = ws.receive()
        assert message['type'] == 'websocket.close'
        assert message['code'] == 4003


def test_asset_list_edit_and_delete(client, auth_headers, admin_headers):
    client.post('/assets/batch', json={'type': 'CO2', 'format': '6kg', 'quantity': 2}, headers=auth_headers)
    keg = client.post('/assets/', json={'type': 'BARRIL', 'format': '50L', 'status': 'LLENO'}, headers=auth_headers).json()

    r = client.get('/assets/', params={'type': 'CO2'}, headers=auth_headers)
    assert [a['code'] for a in r.json()] == ['CO2-001', 'CO2-002']
    r = client.get('/assets/', params={'state': 'LLENO'}, headers=auth_headers)
    assert [a['code'] for a in r.json()] == ['KEG-001']

    r = client.put(f"/assets/{keg['id']}", json={'format': '30L', 'variety': 'Porter'}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['format'] == '30L'

    r = client.put(f"/assets/{keg['id']}", json={'type': 'CO2'}, headers=auth_headers)
    assert r.status_code == 422

    assert client.delete(f"/assets/{keg['id']}", headers=auth_headers).status_code == 403
    assert client.delete(f"/assets/{keg['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/assets/{keg['id']}", headers=auth_headers).status_code == 404


def test_admin_lists_users_and_routes(client, auth_headers, admin_headers, db):
    client.get('/users/me', headers=auth_headers)
    assert client.get('/users/', headers=auth_headers).status_code == 403

    r = client.get('/users/', headers=admin_headers)
    assert {u['id'] for u in r.json()} == {'admin-1', 'operador-1'}

    db.add(Route(name='Ruta Norte', created_by='admin-1', stops=[
        {'customer_id': 'c1', 'customer_name': 'Bar', 'assets': [{'asset_id': 'a1', 'asset_code': 'KEG-001'}]},
    ]))
    db.commit()

    r = client.get('/routes/', headers=admin_headers)
    assert r.status_code == 200
    route = r.json()[0]
    assert route['name'] == 'Ruta Norte'
    assert route['status'] == 'PENDIENTE'
    assert route['stops'][0]['assets'][0]['asset_code'] == 'KEG-001'

    assert client.get(f"/routes/{route['id']}", headers=admin_headers).json()['id'] == route['id']
    assert client.get('/routes/no-existe', headers=admin_headers).status_code == 404


def test_bad_list_filters_return_empty_page(client, auth_headers, db):
    r = client.get('/events/', params={'event_type': 'PERDIDO', 'request_id': 'r9'}, headers=auth_headers)
    assert r.status_code == 200
    page = r.json()
    assert page['items'] == []
    assert page['request_id'] == 'r9'
    assert page['error']['code'] == 'validation_error'

    r = client.get('/customers/', params={'cursor': 'basura'}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()['error']['code'] == 'validation_error'

    assert db.query(AppLog).count() == 0


def test_customer_type_cannot_be_cleared(client, auth_headers):
    customer = client.post('/customers/', json={'name': 'Distribuidora', 'type': 'DISTRIBUIDOR'}, headers=auth_headers).json()

    r = client.put(f"/customers/{customer['id']}", json={'type': None}, headers=auth_headers)
    assert r.status_code == 422

    r = client.get(f"/customers/{customer['id']}", headers=auth_headers)
    assert r.json()['type'] == 'DISTRIBUIDOR'


def test_live_history_rejects_bad_filters(client, auth_headers):
    token = create_token('operador-1', email='operador@cerveceria.test')
    with client.websocket_connect(f'/live/history?token={token}') as ws:
        first = ws.receive_json()
        assert first['type'] == 'page'

        ws.send_json({'type': 'filters', 'filters': {'critical_only': 'quizás'}, 'request_id': 'r3'})
        message = ws.receive_json()
        assert message['type'] == 'error'
        assert message['code'] == 'validation_error'
        assert message['request_id'] == 'r3'

        ws.send_json({'type': 'filters', 'filters': {'critical_only': 'false'}, 'request_id': 'r4'})
        page = ws.receive_json()
        assert page['type'] == 'page'
        assert page['request_id'] == 'r4'
        assert page['error'] is None
