from unittest.mock import patch, call

import pytest
import requests

from chalicelib.fulfillment import FactoryClient, FactoryConfirmation
from chalicelib.utils.exceptions import UpstreamFailure, UpstreamTimeout, FactoryRejected
from test.utils.request_utils import factory_response, factory_confirmation

diner = {'id': 'diner-1', 'name': 'pizza diner', 'email': 'd@jwt.com'}
order = {'id': 'order-1', 'franchiseId': 'f', 'storeId': 's',
         'items': [{'menuId': 'm', 'description': 'Veggie', 'price': 0.0038}]}


@pytest.fixture
def client():
    return FactoryClient(base_url='https://pizza-factory.test/', api_key='secret', timeout=3,
                         max_attempts=4, backoff_base=0.2)


@pytest.fixture
def sleep():
    with patch('chalicelib.fulfillment.time.sleep') as mocked_sleep:
        yield mocked_sleep


def test_submit_order_success(client, sleep):
    with patch('chalicelib.fulfillment.requests.post', return_value=factory_confirmation('jwt-1', 'https://r')) \
            as mocked_post:
        confirmation = client.submit_order(diner, order)

    assert confirmation == FactoryConfirmation(jwt='jwt-1', report_url='https://r')
    mocked_post.assert_called_once_with(
        'https://pizza-factory.test/api/order',
        json={'diner': diner, 'order': order},
        headers={'Content-Type': 'application/json', 'Authorization': 'Bearer secret'},
        timeout=3
    )
    sleep.assert_not_called()


def test_submit_order_retries_server_errors(client, sleep):
    responses = [factory_response(500), factory_response(503), factory_response(429), factory_confirmation()]
    with patch('chalicelib.fulfillment.requests.post', side_effect=responses) as mocked_post:
        confirmation = client.submit_order(diner, order)

    assert confirmation.jwt == 'factory.signed.jwt'
    assert mocked_post.call_count == 4
    assert sleep.call_args_list == [call(0.2), call(0.4), call(0.8)]


def test_submit_order_gives_up_after_max_attempts(client, sleep):
    with patch('chalicelib.fulfillment.requests.post', return_value=factory_response(500)) as mocked_post:
        with pytest.raises(UpstreamFailure) as error:
            client.submit_order(diner, order)

    assert type(error.value) is UpstreamFailure
    assert mocked_post.call_count == 4
    assert sleep.call_count == 3


def test_submit_order_connection_errors_are_retried(client, sleep):
    side_effect = [requests.exceptions.ConnectionError('refused'), factory_confirmation()]
    with patch('chalicelib.fulfillment.requests.post', side_effect=side_effect) as mocked_post:
        assert client.submit_order(diner, order).jwt == 'factory.signed.jwt'
    assert mocked_post.call_count == 2


def test_submit_order_timeout(client, sleep):
    with patch('chalicelib.fulfillment.requests.post', side_effect=requests.exceptions.ReadTimeout('slow')):
        with pytest.raises(UpstreamTimeout):
            client.submit_order(diner, order)
    assert sleep.call_count == 3


def test_submit_order_rejected_is_not_retried(client, sleep):
    rejection = factory_response(400, {'message': 'unknown store'})
    with patch('chalicelib.fulfillment.requests.post', return_value=rejection) as mocked_post:
        with pytest.raises(FactoryRejected) as error:
            client.submit_order(diner, order)

    assert 'unknown store' in str(error.value)
    assert error.value.STATUS_CODE == 502
    assert mocked_post.call_count == 1
    sleep.assert_not_called()


def test_submit_order_rejected_with_text_body(client, sleep):
    with patch('chalicelib.fulfillment.requests.post', return_value=factory_response(401, 'bad api key')):
        with pytest.raises(FactoryRejected) as error:
            client.submit_order(diner, order)
    assert 'bad api key' in str(error.value)


@pytest.mark.parametrize('body', ['not json', {'reportUrl': 'https://r'}, {'jwt': ''}, ['jwt']])
def test_submit_order_malformed_confirmation(client, sleep, body):
    with patch('chalicelib.fulfillment.requests.post', return_value=factory_response(200, body)) as mocked_post:
        with pytest.raises(UpstreamFailure):
            client.submit_order(diner, order)
    assert mocked_post.call_count == 1


def test_backoff_delay(client):
    assert [client.backoff_delay(attempt) for attempt in (1, 2, 3)] == [0.2, 0.4, 0.8]
