import functools
from typing import Optional

from chalice.app import Request

from chalicelib import tokens
from chalicelib.utils import exceptions as utils_exceptions
from chalicelib.utils.logger import logger


def read_bearer_token(request: Request) -> Optional[str]:
    header = (request.headers or {}).get('authorization') or ''
    scheme, _, token = header.strip().partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def _set_auth_result(request: Request, token: str, identity: tokens.Identity) -> None:
    setattr(request, 'auth_result', {
        'token': token,
        'identity': identity,
        'user_id': identity.user_id,
        'roles': identity.roles
    })


def authenticate(func):
    """
    Wrapper for functions which require user's authentication.
    The wrapped function gets the request as the first argument,
    the resolved identity is put to request.auth_result
    """

    @functools.wraps(func)
    def result_auth(request: Request, *args, **kwargs):
        token = read_bearer_token(request)
        if token is None:
            raise utils_exceptions.Unauthenticated('unauthorized')
        identity = tokens.verify(token)
        _set_auth_result(request, token, identity)
        logger.info(f'authenticate ::: SUCCESS, user_id={identity.user_id}, func.__name__ {func.__name__}')
        return func(request, *args, **kwargs)

    return result_auth


def authenticate_optional(func):
    """
    Wrapper for public functions which show more to authenticated users.
    request.auth_result is None for anonymous or invalid credentials
    """

    @functools.wraps(func)
    def result_auth(request: Request, *args, **kwargs):
        setattr(request, 'auth_result', None)
        token = read_bearer_token(request)
        if token is not None:
            try:
                _set_auth_result(request, token, tokens.verify(token))
            except utils_exceptions.Unauthenticated:
                logger.info(f'authenticate_optional ::: invalid token ignored, func.__name__ {func.__name__}')
        return func(request, *args, **kwargs)

    return result_auth


def get_identity(request: Request) -> Optional[tokens.Identity]:
    auth_result = getattr(request, 'auth_result', None)
    return auth_result['identity'] if auth_result else None
