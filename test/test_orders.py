from decimal import Decimal
from unittest.mock import patch

import pytest
import requests
from boto3.dynamodb.conditions import Key

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ORDER_CONFIRMED, ORDER_FAILED
from chalicelib.constants.status_codes import http200, http400, http401, http404, http502, http504
from chalicelib.utils import db
from test.utils.request_utils import make_request, register_user, login_admin, create_franchise, create_store, \
    add_menu_item, factory_response, factory_confirmation


@pytest.fixture
def no_backoff_sleep():
    with patch('chalicelib.fulfillment.time.sleep') as mocked_sleep:
        yield mocked_sleep


def create_test_pizzeria(chalice_client):
    """Franchise with one store and a two item menu, returns (franchise_id, store_id, [menu item ids])"""
    admin_token = login_admin(chalice_client)
    franchise_id = create_franchise(chalice_client, admin_token).json_body['id']
    store_id = create_store(chalice_client, admin_token, franchise_id).json_body['id']
    add_menu_item(chalice_client, admin_token, title='Veggie', price=0.0038)
    menu = add_menu_item(chalice_client, admin_token, title='Pepperoni', price=0.0042).json_body
    return franchise_id, store_id, [item['id'] for item in menu]


def order_body(franchise_id, store_id, menu_ids, **item_fields):
    return {
        'franchiseId': franchise_id,
        'storeId': store_id,
        'items': [{'menuId': menu_id, **item_fields} for menu_id in menu_ids]
    }


def get_diner_order_records(diner_id):
    return db.query_items_paged(Key('partkey').eq(keys_structure.orders_pk.format(diner_id=diner_id)))


def test_create_order(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post', return_value=factory_confirmation('jwt-1', 'https://r')) \
            as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, menu_ids[:1]))

    assert response.status_code == http200
    assert response.json_body['jwt'] == 'jwt-1'
    assert response.json_body['followLinkToEndChaos'] == 'https://r'
    order = response.json_body['order']
    assert order['status'] == ORDER_CONFIRMED
    assert order['externalConfirmationId'] == 'jwt-1'
    assert order['dinerId'] == diner['id']
    assert order['items'] == [{'menuId': menu_ids[0], 'description': 'Veggie', 'price': 0.0038}]

    payload = mocked_post.call_args.kwargs['json']
    assert payload['diner'] == {'id': diner['id'], 'name': diner['name'], 'email': diner['email']}
    assert payload['order']['id'] == order['id']

    history = make_request(chalice_client, '/api/order', token=token)
    assert history.status_code == http200
    assert history.json_body['dinerId'] == diner['id']
    assert [item['id'] for item in history.json_body['orders']] == [order['id']]


def test_create_order_prices_come_from_menu(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    _, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post', return_value=factory_confirmation()):
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, menu_ids, price=100, description='mine'))

    order = response.json_body['order']
    assert [item['price'] for item in order['items']] == [0.0038, 0.0042]
    assert [item['description'] for item in order['items']] == ['mine', 'mine']
    assert order['total'] == 0.008


def test_create_order_unknown_menu_item(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post') as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, [menu_ids[0], 'unknown']))

    assert response.status_code == http404
    mocked_post.assert_not_called()
    assert get_diner_order_records(diner['id']) == []


def test_create_order_store_not_in_franchise(chalice_client, no_backoff_sleep):
    franchise_id, _, menu_ids = create_test_pizzeria(chalice_client)
    _, other_store_id, _ = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post') as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, other_store_id, menu_ids))

    assert response.status_code == http400
    mocked_post.assert_not_called()
    assert get_diner_order_records(diner['id']) == []


def test_create_order_empty_menu_id(chalice_client, no_backoff_sleep):
    franchise_id, store_id, _ = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post') as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, ['']))

    assert response.status_code == http404
    mocked_post.assert_not_called()
    assert get_diner_order_records(diner['id']) == []


@pytest.mark.parametrize('franchise_id, store_id', [('', None), (None, ''), ('  ', None), (None, '  ')])
def test_create_order_empty_franchise_or_store(chalice_client, no_backoff_sleep, franchise_id, store_id):
    real_franchise_id, real_store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)
    body = order_body(real_franchise_id if franchise_id is None else franchise_id,
                      real_store_id if store_id is None else store_id, menu_ids)

    with patch('chalicelib.fulfillment.requests.post') as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token, json_body=body)

    assert response.status_code == http400
    mocked_post.assert_not_called()
    assert get_diner_order_records(diner['id']) == []


def test_create_order_without_items(chalice_client, no_backoff_sleep):
    franchise_id, store_id, _ = create_test_pizzeria(chalice_client)
    _, token = register_user(chalice_client)
    response = make_request(chalice_client, '/api/order', 'POST', token=token,
                            json_body=order_body(franchise_id, store_id, []))
    assert response.status_code == http400


def test_create_order_unauthenticated(chalice_client):
    response = make_request(chalice_client, '/api/order', 'POST', json_body={'items': []})
    assert response.status_code == http401


def test_factory_recovers_within_retry_budget(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)
    responses = [factory_response(500), factory_response(502), factory_response(503), factory_confirmation('jwt-4')]

    with patch('chalicelib.fulfillment.requests.post', side_effect=responses) as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, menu_ids[:1]))

    assert response.status_code == http200
    assert mocked_post.call_count == 4
    records = get_diner_order_records(diner['id'])
    assert [(record['status_'], record['external_confirmation_id']) for record in records] == \
        [(ORDER_CONFIRMED, 'jwt-4')]


def test_factory_fails_every_attempt(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post', return_value=factory_response(500)) as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, menu_ids[:1]))

    assert response.status_code == http502
    assert response.json_body['exception'] == 'UpstreamFailure'
    assert mocked_post.call_count == 4

    history = make_request(chalice_client, '/api/order', token=token).json_body['orders']
    assert [order['status'] for order in history] == [ORDER_FAILED]
    assert 'externalConfirmationId' not in history[0]
    assert history[0]['failureReason']


def test_factory_timeout(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post', side_effect=requests.exceptions.ConnectTimeout('slow')):
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, menu_ids[:1]))

    assert response.status_code == http504
    assert [record['status_'] for record in get_diner_order_records(diner['id'])] == [ORDER_FAILED]


def test_factory_rejects_order(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)
    rejection = factory_response(400, {'message': 'store is closed'})

    with patch('chalicelib.fulfillment.requests.post', return_value=rejection) as mocked_post:
        response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                json_body=order_body(franchise_id, store_id, menu_ids[:1]))

    assert response.status_code == http502
    assert response.json_body['exception'] == 'FactoryRejected'
    assert 'store is closed' in response.json_body['message']
    assert mocked_post.call_count == 1
    records = get_diner_order_records(diner['id'])
    assert records[0]['status_'] == ORDER_FAILED
    assert 'store is closed' in records[0]['failure_reason']


def test_orders_newest_first(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    _, token = register_user(chalice_client)

    order_ids = []
    with patch('chalicelib.fulfillment.requests.post', return_value=factory_confirmation()):
        for menu_id in menu_ids:
            response = make_request(chalice_client, '/api/order', 'POST', token=token,
                                    json_body=order_body(franchise_id, store_id, [menu_id]))
            order_ids.append(response.json_body['order']['id'])

    history = make_request(chalice_client, '/api/order', token=token).json_body['orders']
    assert [order['id'] for order in history] == list(reversed(order_ids))


def test_diner_sees_only_own_orders(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    _, token_a = register_user(chalice_client)
    diner_b, token_b = register_user(chalice_client)

    with patch('chalicelib.fulfillment.requests.post', return_value=factory_confirmation()):
        make_request(chalice_client, '/api/order', 'POST', token=token_a,
                     json_body=order_body(franchise_id, store_id, menu_ids[:1]))

    history_b = make_request(chalice_client, '/api/order', token=token_b).json_body
    assert history_b == {'dinerId': diner_b['id'], 'orders': []}


def test_order_total_is_stored_as_decimal(chalice_client, no_backoff_sleep):
    franchise_id, store_id, menu_ids = create_test_pizzeria(chalice_client)
    diner, token = register_user(chalice_client)
    with patch('chalicelib.fulfillment.requests.post', return_value=factory_confirmation()):
        make_request(chalice_client, '/api/order', 'POST', token=token,
                     json_body=order_body(franchise_id, store_id, menu_ids))
    assert get_diner_order_records(diner['id'])[0]['total'] == Decimal('0.0080')
