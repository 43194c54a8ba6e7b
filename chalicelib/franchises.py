from typing import Tuple, List, Dict, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.authorization import Role, Resource, authorize, is_admin, CREATE_FRANCHISE, CREATE_STORE, \
    CLOSE_STORE, READ_USER_FRANCHISES
from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import DEFAULT_PAGE_LIMIT
from chalicelib.constants.status_codes import http200
from chalicelib.users import User
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.logger import logger


def _is_non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


class Store(EntityBase):
    pk = keys_structure.stores_pk
    sk = keys_structure.stores_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'franchise_id': lambda x: isinstance(x, str),
        'name_': _is_non_empty_str,
        'date_created': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, franchise_id, **kwargs):
        EntityBase.__init__(self, id_)

        self.franchise_id: str = franchise_id
        self.name_: str = kwargs.get('name_')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.record_type = 'store'

    @classmethod
    def init_get_by_id(cls, franchise_id, store_id):
        logger.info("init_get_by_id ::: started")
        c = cls(id_=store_id, franchise_id=franchise_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def get_franchise_stores(cls, franchise_id) -> List['Store']:
        store_db_records = utils_db.query_items_paged(
            Key('partkey').eq(cls.pk.format(franchise_id=franchise_id)))
        return sorted((cls(**record) for record in store_db_records), key=lambda s: (s.date_created, s.id_))

    def close(self) -> None:
        try:
            utils_db.delete_db_record(self._get_db_key(), condition_expression=Attr('partkey').exists())
        except exceptions.ConditionNotMet:
            raise exceptions.NotFound('store not found')
        logger.info(f'close ::: store {self.id_} of franchise {self.franchise_id} closed')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(franchise_id=self.franchise_id), self.sk.format(store_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'franchise_id': self.franchise_id,
            'name_': self.name_,
            'date_created': self.date_created
        }

    def to_short_ui(self) -> Dict:
        return {'id': self.id_, 'name': self.name_}


class Franchise(EntityBase):
    pk = keys_structure.franchises_pk
    sk = keys_structure.franchises_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'name_': _is_non_empty_str,
        'admins': lambda x: isinstance(x, list),
        'date_created': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.name_: str = kwargs.get('name_')
        self.admins: List[Dict] = kwargs.get('admins', [])
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.record_type = 'franchise'
        self.stores: Optional[List[Store]] = None

    @classmethod
    def init_get_by_id(cls, franchise_id):
        logger.info(f"init_get_by_id ::: started {franchise_id=}")
        c = cls(franchise_id)
        try:
            c.__init__(**c._get_db_item())
        except exceptions.RecordNotFound:
            raise exceptions.NotFound('franchise not found')
        return c

    @classmethod
    def get_all(cls) -> List['Franchise']:
        franchise_db_records = utils_db.query_items_paged(Key('partkey').eq(cls.pk))
        return sorted((cls(**record) for record in franchise_db_records), key=lambda f: (f.date_created, f.id_))

    @classmethod
    def create(cls, name, admin_emails: List[str]) -> 'Franchise':
        if not _is_non_empty_str(name):
            raise exceptions.ValidationError('franchise name is required')
        admin_users: List[User] = []
        for email in admin_emails:
            try:
                user = User.init_by_email(email)
            except exceptions.NotFound:
                raise exceptions.NotFound(f'unknown user for franchise admin {email} provided')
            if any(admin.id_ == user.id_ for admin in admin_users):
                logger.info(f'create ::: admin {user.id_} listed more than once, kept once')
                continue
            admin_users.append(user)

        franchise = cls(
            id_=str(uuid4()),
            name_=name.strip(),
            admins=[{'id': user.id_, 'name': user.name_, 'email': user.email} for user in admin_users]
        )
        if not franchise._claim_name():
            raise exceptions.Conflict('franchise name already exists')
        try:
            franchise._create_db_record()
        except Exception:
            franchise._release_name()
            logger.warning(f'create ::: franchise {franchise.id_} was not created, name released')
            raise

        for user in admin_users:
            user.add_role(Role.franchisee(franchise.id_))
        return franchise

    def _claim_name(self) -> bool:
        return utils_db.put_unique_db_record({
            'partkey': keys_structure.franchise_names_pk,
            'sortkey': keys_structure.franchise_names_sk.format(name=self.name_.lower()),
            'record_type': 'franchise_name',
            'franchise_id': self.id_,
            'date_created': now_iso()
        })

    def _release_name(self) -> None:
        utils_db.delete_db_record({
            'partkey': keys_structure.franchise_names_pk,
            'sortkey': keys_structure.franchise_names_sk.format(name=self.name_.lower())
        })

    def load_stores(self) -> List[Store]:
        self.stores = Store.get_franchise_stores(self.id_)
        return self.stores

    def has_admin(self, user_id) -> bool:
        return any(admin.get('id') == user_id for admin in self.admins)

    def add_store(self, name) -> Store:
        if not _is_non_empty_str(name):
            raise exceptions.ValidationError('store name is required')
        store = Store(id_=str(uuid4()), franchise_id=self.id_, name_=name.strip())
        store._create_db_record()
        logger.info(f'add_store ::: store {store.id_} added to franchise {self.id_}')
        return store

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(franchise_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name_': self.name_,
            'admins': self.admins,
            'date_created': self.date_created
        }

    def to_ui(self, with_admins: bool = True) -> Dict:
        item = {'id': self.id_, 'name': self.name_}
        if with_admins:
            item['admins'] = self.admins
        if self.stores is not None:
            item['stores'] = [store.to_short_ui() for store in self.stores]
        return item


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_create_franchise(request) -> Response:
    authorize(utils_auth.get_identity(request), CREATE_FRANCHISE)
    body = utils_data.parse_raw_body(request)
    admins = body.get('admins', [])
    if not isinstance(admins, list) or not all(isinstance(admin, dict) for admin in admins):
        raise exceptions.ValidationError('admins must be a list of {"email": ...} objects')
    franchise = Franchise.create(body.get('name'), [admin.get('email') or '' for admin in admins])
    return Response(status_code=http200, body=franchise.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate_optional
def endpoint_list_franchises(request) -> Response:
    identity = utils_auth.get_identity(request)
    qp = request.query_params or {}
    page = utils_data.get_int_param(qp, 'page', 0)
    limit = utils_data.get_int_param(qp, 'limit', DEFAULT_PAGE_LIMIT, minimum=1)
    name_regex = utils_data.glob_to_regex(qp.get('name'))

    matching = [franchise for franchise in Franchise.get_all() if name_regex.match(franchise.name_ or '')]
    page_franchises, more = utils_data.paginate(matching, page, limit)
    with_admins = identity is not None and is_admin(identity)
    for franchise in page_franchises:
        franchise.load_stores()
    logger.info(f"endpoint_list_franchises ::: returning {len(page_franchises)} franchises, {more=}")
    return Response(
        status_code=http200,
        body={'franchises': [franchise.to_ui(with_admins) for franchise in page_franchises], 'more': more}
    )


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_list_user_franchises(request, user_id) -> Response:
    authorize(utils_auth.get_identity(request), READ_USER_FRANCHISES, Resource(owner_id=user_id))
    franchises = [franchise for franchise in Franchise.get_all() if franchise.has_admin(user_id)]
    for franchise in franchises:
        franchise.load_stores()
    return Response(status_code=http200, body=[franchise.to_ui() for franchise in franchises])


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_create_store(request, franchise_id) -> Response:
    authorize(utils_auth.get_identity(request), CREATE_STORE, Resource(franchise_id=franchise_id))
    body = utils_data.parse_raw_body(request)
    franchise = Franchise.init_get_by_id(franchise_id)
    store = franchise.add_store(body.get('name'))
    return Response(status_code=http200, body=store.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_close_store(request, franchise_id, store_id) -> Response:
    authorize(utils_auth.get_identity(request), CLOSE_STORE, Resource(franchise_id=franchise_id))
    Franchise.init_get_by_id(franchise_id)
    Store(id_=store_id, franchise_id=franchise_id).close()
    return Response(status_code=http200, body={'message': 'store deleted'})
