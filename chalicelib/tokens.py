import hashlib
import secrets
from datetime import datetime
from typing import NamedTuple, List, Dict

from boto3.dynamodb.conditions import Attr

from chalicelib.authorization import Role, roles_from_db
from chalicelib.constants import keys_structure
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.logger import logger

TOKEN_BYTES = 32


class Identity(NamedTuple):
    user_id: str
    name: str
    email: str
    roles: List[Role]


def token_digest(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _token_key(token: str) -> Dict:
    return {
        'partkey': keys_structure.tokens_pk,
        'sortkey': keys_structure.tokens_sk.format(token_digest=token_digest(token))
    }


def issue(user_id: str) -> str:
    token = secrets.token_urlsafe(TOKEN_BYTES)
    utils_db.put_db_record({
        **_token_key(token),
        'record_type': 'token',
        'user_id': user_id,
        'revoked': False,
        'date_created': datetime.now().isoformat(timespec='microseconds')
    })
    logger.info(f'issue ::: token issued for {user_id=}')
    return token


def verify(token: str) -> Identity:
    if not token:
        raise exceptions.Unauthenticated('unauthorized')
    key = _token_key(token)
    try:
        token_record = utils_db.get_db_item(key['partkey'], key['sortkey'], consistent_read=True)
    except exceptions.RecordNotFound:
        raise exceptions.Unauthenticated('unauthorized')
    if token_record.get('revoked', False):
        logger.info(f"verify ::: revoked token used by user_id={token_record.get('user_id')}")
        raise exceptions.Unauthenticated('unauthorized')

    user_id = token_record['user_id']
    try:
        user_record = utils_db.get_db_item(
            keys_structure.users_pk, keys_structure.users_sk.format(user_id=user_id), consistent_read=True)
    except exceptions.RecordNotFound:
        logger.warning(f'verify ::: token subject {user_id=} does not exist')
        raise exceptions.Unauthenticated('unauthorized')

    return Identity(
        user_id=user_id,
        name=user_record.get('name_'),
        email=user_record.get('email'),
        roles=roles_from_db(user_record.get('roles'))
    )


def revoke(token: str) -> None:
    if not token:
        return
    try:
        utils_db.update_db_record(
            key=_token_key(token),
            update_body={'revoked': True, 'date_revoked': datetime.now().isoformat(timespec='microseconds')},
            allowed_attrs_to_update=['revoked', 'date_revoked'],
            allowed_attrs_to_delete=[],
            condition_expression=Attr('partkey').exists() & Attr('revoked').eq(False)
        )
        logger.info('revoke ::: token revoked')
    except exceptions.ConditionNotMet:
        logger.info('revoke ::: token unknown or already revoked')
