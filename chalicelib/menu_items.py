from decimal import Decimal
from typing import List, Dict, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib.authorization import authorize, UPDATE_MENU
from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.logger import logger


class MenuItem(EntityBase):
    pk = keys_structure.menu_items_pk
    sk = keys_structure.menu_items_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'title': lambda x: isinstance(x, str) and bool(x.strip()),
        'price': lambda x: isinstance(x, Decimal) and x >= 0,
        'date_created': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str),
        'image': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.title: str = kwargs.get('title')
        self.description: str = kwargs.get('description')
        self.image: str = kwargs.get('image')
        self.price: Decimal = utils_data.to_decimal(kwargs.get('price'))
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.record_type = 'menu_item'

    @classmethod
    def init_get_by_id(cls, menu_item_id):
        logger.info(f"init_get_by_id ::: started {menu_item_id=}")
        c = cls(id_=menu_item_id)
        try:
            c.__init__(**c._get_db_item())
        except exceptions.RecordNotFound:
            raise exceptions.NotFound(f'menu item {menu_item_id} not found')
        return c

    @classmethod
    def get_menu(cls) -> List['MenuItem']:
        menu_item_db_records: List[Dict] = utils_db.query_items_paged(Key('partkey').eq(cls.pk))
        return sorted((cls(**record) for record in menu_item_db_records), key=lambda i: (i.date_created, i.id_))

    @classmethod
    def add(cls, title, description, image, price) -> 'MenuItem':
        if not isinstance(title, str) or not title.strip():
            raise exceptions.ValidationError('menu item title is required')
        decimal_price = utils_data.to_decimal(price)
        if decimal_price is None or decimal_price < 0:
            raise exceptions.ValidationError('menu item price must be a non-negative number')
        menu_item = cls(id_=str(uuid4()), title=title.strip(), description=description, image=image,
                        price=decimal_price)
        menu_item._create_db_record()
        return menu_item

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(menu_item_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'title': self.title,
            'description': self.description,
            'image': self.image,
            'price': self.price,
            'date_created': self.date_created
        }

    def _to_ui(self) -> Dict:
        return {
            'id': self.id_,
            'title': self.title,
            'description': self.description,
            'image': self.image,
            'price': self.price
        }


def menu_to_ui() -> List[Dict]:
    return [menu_item.to_ui() for menu_item in MenuItem.get_menu()]


@utils_app.request_exception_handler
@utils_app.log_start_finish
def endpoint_get_menu(request) -> Response:
    menu = menu_to_ui()
    logger.info(f"endpoint_get_menu ::: returning menu items={[item['id'] for item in menu]}")
    return Response(status_code=http200, body=menu)


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_add_menu_item(request) -> Response:
    authorize(utils_auth.get_identity(request), UPDATE_MENU)
    body = utils_data.parse_raw_body(request)
    MenuItem.add(
        title=body.get('title'),
        description=body.get('description'),
        image=body.get('image'),
        price=body.get('price')
    )
    return Response(status_code=http200, body=menu_to_ui())
