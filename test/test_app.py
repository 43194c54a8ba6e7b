from chalicelib.constants.constants import SERVICE_VERSION
from chalicelib.constants.status_codes import http200, http404
from test.utils.request_utils import make_request


def test_index(chalice_client):
    response = make_request(chalice_client, endpoint='/')
    assert response.status_code == http200
    assert response.json_body == {'message': 'welcome to JWT Pizza', 'version': SERVICE_VERSION}


def test_invalid_json_body(chalice_client):
    response = chalice_client.http.request(
        method='POST', path='/api/auth', headers={'Content-Type': 'application/json'}, body=b'{not json')
    assert response.status_code == 400
    assert response.json_body['exception'] == 'ValidationError'
    assert response.json_body['error_id']


def test_domain_error_body_shape(chalice_client):
    response = make_request(chalice_client, '/api/auth', 'PUT', json_body={'email': 'nobody@jwt.com', 'password': 'x'})
    assert response.status_code == http404
    assert set(response.json_body.keys()) == {'message', 'exception', 'error_id'}
    assert response.json_body['exception'] == 'NotFound'
