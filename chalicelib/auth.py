import threading
from typing import Optional

from chalice import Response

from chalicelib import tokens
from chalicelib.authorization import Role
from chalicelib.constants.constants import DEFAULT_ADMIN_NAME, DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD
from chalicelib.constants.status_codes import http200
from chalicelib.users import User, auth_response
from chalicelib.utils import app as utils_app, auth as utils_auth, data as utils_data, exceptions
from chalicelib.utils.logger import logger

_bootstrap_thread: Optional[threading.Thread] = None


@utils_app.request_exception_handler
@utils_app.log_start_finish
def endpoint_register(request) -> Response:
    body = utils_data.parse_raw_body(request)
    user = User.create(
        name=body.get('name'),
        email=body.get('email'),
        password=body.get('password'),
        roles=[Role.diner()]
    )
    return Response(status_code=http200, body=auth_response(user))


@utils_app.request_exception_handler
@utils_app.log_start_finish
def endpoint_login(request) -> Response:
    body = utils_data.parse_raw_body(request)
    email, password = body.get('email'), body.get('password')
    if not isinstance(email, str) or not isinstance(password, str):
        raise exceptions.NotFound('unknown user')
    # unknown email and wrong password answer the same way
    user = User.init_by_email(email)
    if not user.check_password(password):
        logger.info(f'endpoint_login ::: wrong password for user_id={user.id_}')
        raise exceptions.NotFound('unknown user')
    return Response(status_code=http200, body=auth_response(user))


@utils_app.request_exception_handler
@utils_app.log_start_finish
def endpoint_logout(request) -> Response:
    token = utils_auth.read_bearer_token(request)
    if token is None:
        raise exceptions.Unauthenticated('unauthorized')
    tokens.revoke(token)
    return Response(status_code=http200, body={'message': 'logout successful'})


def ensure_default_admin() -> bool:
    """
    Creates the default administrator unless its email is already taken.
    Safe to run from several processes at once, the unique email claim
    decides which one creates the account
    :return:
    True if this call created the account
    """
    try:
        user = User.create(
            name=DEFAULT_ADMIN_NAME,
            email=DEFAULT_ADMIN_EMAIL,
            password=DEFAULT_ADMIN_PASSWORD,
            roles=[Role.admin()]
        )
    except exceptions.Conflict:
        logger.info('ensure_default_admin ::: default admin already present')
        return False
    logger.info(f'ensure_default_admin ::: default admin created, user_id={user.id_}')
    return True


def _run_bootstrap() -> None:
    try:
        ensure_default_admin()
    except Exception as error:
        logger.exception(f'_run_bootstrap ::: default admin bootstrap failed: {error}')


def start_default_admin_bootstrap() -> threading.Thread:
    """
    Runs ensure_default_admin in the background, logins of the default admin
    fail with 404 until it is done
    """
    global _bootstrap_thread
    if _bootstrap_thread is None or not _bootstrap_thread.is_alive():
        _bootstrap_thread = threading.Thread(target=_run_bootstrap, name='default-admin-bootstrap', daemon=True)
        _bootstrap_thread.start()
        logger.info('start_default_admin_bootstrap ::: started')
    return _bootstrap_thread
