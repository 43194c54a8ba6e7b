from decimal import Decimal
from typing import Tuple, List, Dict, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.authorization import Resource, authorize, CREATE_ORDER, READ_ORDERS
from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ORDER_SUBMITTED, ORDER_CONFIRMED, ORDER_FAILED
from chalicelib.constants.status_codes import http200
from chalicelib.constants.substitute_keys import from_db
from chalicelib.franchises import Store
from chalicelib.fulfillment import FactoryClient, FactoryConfirmation
from chalicelib.menu_items import MenuItem
from chalicelib.tokens import Identity
from chalicelib.utils import auth as utils_auth, data as utils_data, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.logger import logger

ORDER_STATUSES = (ORDER_SUBMITTED, ORDER_CONFIRMED, ORDER_FAILED)


def _is_non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


class Order(EntityBase):
    pk = keys_structure.orders_pk
    sk = keys_structure.orders_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'diner_id': lambda x: isinstance(x, str),
        'franchise_id': lambda x: isinstance(x, str),
        'store_id': lambda x: isinstance(x, str),
        'items': lambda x: isinstance(x, list) and len(x) > 0,
        'total': lambda x: isinstance(x, Decimal),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'status_': lambda x: x in ORDER_STATUSES,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'external_confirmation_id': lambda x: isinstance(x, str),
        'failure_reason': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, diner_id, **kwargs):
        EntityBase.__init__(self, id_)

        self.diner_id: str = diner_id
        self.franchise_id: str = kwargs.get('franchise_id')
        self.store_id: str = kwargs.get('store_id')
        self.items: List[Dict] = kwargs.get('items', [])
        self.total: Decimal = kwargs.get('total')
        self.status_: str = kwargs.get('status_', ORDER_SUBMITTED)
        self.external_confirmation_id: Optional[str] = kwargs.get('external_confirmation_id')
        self.failure_reason: Optional[str] = kwargs.get('failure_reason')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or self.date_created
        self.record_type = 'order'

    @classmethod
    def build(cls, diner_id: str, franchise_id, store_id, requested_items) -> 'Order':
        """
        Resolves the requested items against the current menu and checks the
        store belongs to the franchise. Nothing is written to the db here
        :return:
        Order in submitted state with prices and total taken from the menu
        """
        if not isinstance(requested_items, list) or not requested_items:
            raise exceptions.ValidationError('order must contain at least one item')
        if not _is_non_empty_str(franchise_id) or not _is_non_empty_str(store_id):
            raise exceptions.ValidationError('franchiseId and storeId are required')

        items = []
        for requested_item in requested_items:
            if not isinstance(requested_item, dict) or not isinstance(requested_item.get('menuId'), str):
                raise exceptions.ValidationError('each order item needs a menuId')
            menu_item = MenuItem.init_get_by_id(requested_item['menuId'])
            description = requested_item.get('description')
            items.append({
                'menu_id': menu_item.id_,
                'description': description if isinstance(description, str) and description else menu_item.title,
                'price': menu_item.price
            })

        try:
            Store.init_get_by_id(franchise_id, store_id)
        except exceptions.RecordNotFound:
            raise exceptions.ValidationError(f'store {store_id} does not belong to franchise {franchise_id}')

        return cls(
            id_=str(uuid4()),
            diner_id=diner_id,
            franchise_id=franchise_id,
            store_id=store_id,
            items=items,
            total=sum((item['price'] for item in items), Decimal(0))
        )

    @classmethod
    def get_diner_orders(cls, diner_id: str) -> List['Order']:
        order_db_records: List[Dict] = utils_db.query_items_paged(
            Key('partkey').eq(cls.pk.format(diner_id=diner_id)), scan_forward=False)
        return [cls(**record) for record in order_db_records]

    def submit(self, diner: Identity, factory_client: FactoryClient) -> FactoryConfirmation:
        self.status_ = ORDER_SUBMITTED
        self._create_db_record()
        try:
            confirmation = factory_client.submit_order(
                diner={'id': diner.user_id, 'name': diner.name, 'email': diner.email},
                order=self.to_factory()
            )
        except exceptions.UpstreamFailure as error:
            self._transition(ORDER_FAILED, failure_reason=str(error))
            raise
        self._transition(ORDER_CONFIRMED, external_confirmation_id=confirmation.jwt)
        return confirmation

    def _transition(self, status: str, external_confirmation_id: Optional[str] = None,
                    failure_reason: Optional[str] = None) -> None:
        # only a submitted order may move on, confirmed ones stay as they are
        self.status_ = status
        self.external_confirmation_id = external_confirmation_id
        self.failure_reason = failure_reason
        try:
            self._update_db_record(condition_expression=Attr('status_').eq(ORDER_SUBMITTED))
        except exceptions.ConditionNotMet:
            logger.error(f'_transition ::: order {self.id_} is no longer {ORDER_SUBMITTED}, kept as is')
            raise
        logger.info(f'_transition ::: order {self.id_} moved to {status}')

    def to_factory(self) -> Dict:
        return {
            'id': self.id_,
            'franchiseId': self.franchise_id,
            'storeId': self.store_id,
            'items': [
                {'menuId': item['menu_id'], 'description': item['description'], 'price': float(item['price'])}
                for item in self.items
            ]
        }

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(diner_id=self.diner_id), \
            self.sk.format(date_created=self.date_created, order_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'diner_id': self.diner_id,
            'franchise_id': self.franchise_id,
            'store_id': self.store_id,
            'items': self.items,
            'total': self.total,
            'status_': self.status_,
            'external_confirmation_id': self.external_confirmation_id,
            'failure_reason': self.failure_reason,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def _to_ui(self) -> Dict:
        item = utils_data.cleanup_dict(self._to_dict(), [None])
        item['items'] = [dict(order_item) for order_item in self.items]
        utils_data.substitute_records(item['items'], from_db)
        utils_data.substitute_keys(dict_to_process=item, base_keys=from_db)
        return item


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_create_order(request) -> Response:
    identity = utils_auth.get_identity(request)
    authorize(identity, CREATE_ORDER)
    body = utils_data.parse_raw_body(request)
    order = Order.build(
        diner_id=identity.user_id,
        franchise_id=body.get('franchiseId'),
        store_id=body.get('storeId'),
        requested_items=body.get('items')
    )
    confirmation = order.submit(identity, FactoryClient())
    return Response(
        status_code=http200,
        body={'order': order.to_ui(), 'jwt': confirmation.jwt, 'followLinkToEndChaos': confirmation.report_url}
    )


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_list_orders(request) -> Response:
    identity = utils_auth.get_identity(request)
    authorize(identity, READ_ORDERS, Resource(owner_id=identity.user_id))
    orders = Order.get_diner_orders(identity.user_id)
    logger.info(f"endpoint_list_orders ::: returning {len(orders)} orders of diner {identity.user_id}")
    return Response(status_code=http200, body={'dinerId': identity.user_id, 'orders': [o.to_ui() for o in orders]})
