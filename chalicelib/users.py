from typing import Tuple, List, Dict, Optional
from uuid import uuid4

import bcrypt
from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib import tokens
from chalicelib.authorization import Role, Resource, roles_from_db, authorize, LIST_USERS, READ_PROFILE, \
    UPDATE_PROFILE
from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import BCRYPT_ROUNDS, DEFAULT_PAGE_LIMIT
from chalicelib.constants.status_codes import http200
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.logger import logger


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode('utf-8')


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _is_non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


class User(EntityBase):
    pk = keys_structure.users_pk
    sk = keys_structure.users_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str),
        # roles only grow, through add_role
        'roles': lambda x: isinstance(x, list)
    }

    required_mutable_fields_validation = {
        'name_': _is_non_empty_str,
        'email': _is_non_empty_str,
        'password_hash': lambda x: isinstance(x, str),
        'date_updated': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.name_: str = kwargs.get('name_')
        self.email: str = kwargs.get('email')
        self.password_hash: str = kwargs.get('password_hash')
        self.roles: List[Dict] = kwargs.get('roles', [])
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or self.date_created
        self.record_type = 'user'

    @classmethod
    def init_by_id(cls, id_):
        logger.info(f"init_by_id ::: started {id_=}")
        c = cls(id_)
        try:
            c.__init__(**c._get_db_item())
        except exceptions.RecordNotFound:
            raise exceptions.NotFound('unknown user')
        return c

    @classmethod
    def init_by_email(cls, email: str):
        logger.info("init_by_email ::: started")
        try:
            email_record = utils_db.get_db_item(
                keys_structure.users_email_pk, keys_structure.users_email_sk.format(email=normalize_email(email)))
        except exceptions.RecordNotFound:
            raise exceptions.NotFound('unknown user')
        return cls.init_by_id(email_record['user_id'])

    @classmethod
    def create(cls, name: str, email: str, password: str, roles: List[Role]):
        """
        Creates the user record and claims the email.
        The email claim is a conditional put, so only one of concurrent
        registrations with the same email survives
        """
        if not (_is_non_empty_str(name) and _is_non_empty_str(email) and _is_non_empty_str(password)):
            raise exceptions.ValidationError('name, email, and password are required')
        user = cls(
            id_=str(uuid4()),
            name_=name.strip(),
            email=normalize_email(email),
            password_hash=hash_password(password),
            roles=[role.to_db() for role in roles]
        )
        user._create_db_record()
        if not user._claim_email(user.email):
            utils_db.delete_db_record(user._get_db_key())
            logger.info(f'create ::: email is already registered, user {user.id_} rolled back')
            raise exceptions.Conflict('email is already registered')
        logger.info(f'create ::: user {user.id_} created with roles={user.roles}')
        return user

    def _claim_email(self, email: str) -> bool:
        return utils_db.put_unique_db_record({
            'partkey': keys_structure.users_email_pk,
            'sortkey': keys_structure.users_email_sk.format(email=email),
            'record_type': 'user_email',
            'user_id': self.id_,
            'date_created': now_iso()
        })

    def _release_email(self, email: str) -> None:
        utils_db.delete_db_record({
            'partkey': keys_structure.users_email_pk,
            'sortkey': keys_structure.users_email_sk.format(email=email)
        })

    def check_password(self, password: str) -> bool:
        if not isinstance(password, str) or not self.password_hash:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    def get_roles(self) -> List[Role]:
        return roles_from_db(self.roles)

    def add_role(self, role: Role) -> None:
        if role in self.get_roles():
            logger.info(f'add_role ::: user {self.id_} already has {role=}')
            return
        attributes = utils_db.append_to_list_attr(self._get_db_key(), 'roles', [role.to_db()])
        self.roles = attributes.get('roles', self.roles + [role.to_db()])
        logger.info(f'add_role ::: {role=} added to user {self.id_}')

    def update_profile(self, name: Optional[str] = None, email: Optional[str] = None,
                       password: Optional[str] = None) -> None:
        for key, value in (('name', name), ('email', email), ('password', password)):
            if value is not None and not _is_non_empty_str(value):
                raise exceptions.ValidationError(f'{key} must be a non-empty string')

        old_email = self.email
        new_email = normalize_email(email) if email is not None else old_email
        if new_email != old_email and not self._claim_email(new_email):
            raise exceptions.Conflict('email is already registered')

        old_name, old_password_hash = self.name_, self.password_hash
        if name is not None:
            self.name_ = name.strip()
        self.email = new_email
        if password is not None:
            self.password_hash = hash_password(password)
        try:
            self._update_db_record()
        except Exception:
            self.name_, self.email, self.password_hash = old_name, old_email, old_password_hash
            if new_email != old_email:
                self._release_email(new_email)
                logger.warning(f'update_profile ::: update of user {self.id_} failed, new email released')
            raise

        if new_email != old_email:
            self._release_email(old_email)
        logger.info(f'update_profile ::: user {self.id_} updated')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(user_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name_': self.name_,
            'email': self.email,
            'password_hash': self.password_hash,
            'roles': self.roles,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def _to_ui(self) -> Dict:
        return {
            'id': self.id_,
            'name': self.name_,
            'email': self.email,
            'roles': [
                {'role': role.name, **({'objectId': role.franchise_id} if role.franchise_id else {})}
                for role in self.get_roles()
            ]
        }


def auth_response(user: User) -> Dict:
    return {'user': user.to_ui(), 'token': tokens.issue(user.id_)}


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_me(request) -> Response:
    identity = utils_auth.get_identity(request)
    authorize(identity, READ_PROFILE, Resource(owner_id=identity.user_id))
    return Response(status_code=http200, body=User.init_by_id(identity.user_id).to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_update_user(request, user_id) -> Response:
    identity = utils_auth.get_identity(request)
    authorize(identity, UPDATE_PROFILE, Resource(owner_id=user_id))
    body = utils_data.parse_raw_body(request)
    user = User.init_by_id(user_id)
    user.update_profile(name=body.get('name'), email=body.get('email'), password=body.get('password'))
    return Response(status_code=http200, body=auth_response(user))


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_list_users(request) -> Response:
    authorize(utils_auth.get_identity(request), LIST_USERS)
    qp = request.query_params or {}
    page = utils_data.get_int_param(qp, 'page', 0)
    limit = utils_data.get_int_param(qp, 'limit', DEFAULT_PAGE_LIMIT, minimum=1)
    name_regex = utils_data.glob_to_regex(qp.get('name'))

    user_db_records: List[Dict] = utils_db.query_items_paged(Key('partkey').eq(keys_structure.users_pk))
    users = sorted((User(**record) for record in user_db_records), key=lambda u: (u.date_created, u.id_))
    matching = [user.to_ui() for user in users if name_regex.match(user.name_ or '')]
    page_users, more = utils_data.paginate(matching, page, limit)
    logger.info(f"endpoint_list_users ::: returning {len(page_users)} users, {more=}")
    return Response(status_code=http200, body={'users': page_users, 'more': more})
