import os

from chalice import Chalice, Response

from chalicelib import auth, franchises, menu_items, orders, users
from chalicelib.constants.constants import SERVICE_NAME, SERVICE_VERSION
from chalicelib.constants.status_codes import http200
from chalicelib.utils.logger import set_request_id, log_request

app = Chalice(app_name=SERVICE_NAME)

app.debug = os.environ.get('DEBUG', 'false').lower() == 'true'

if os.environ.get('BOOTSTRAP_DEFAULT_ADMIN', 'true').lower() != 'false':
    auth.start_default_admin_bootstrap()


@app.middleware('http')
def request_context(event, get_response):
    set_request_id(event)
    log_request(event)
    return get_response(event)


@app.route('/', methods=['GET'], cors=True)
def index():
    return Response(status_code=http200, body={'message': 'welcome to JWT Pizza', 'version': SERVICE_VERSION})


# AUTH
@app.route('/api/auth', methods=['POST'], cors=True)
def register():
    return auth.endpoint_register(app.current_request)


@app.route('/api/auth', methods=['PUT'], cors=True)
def login():
    return auth.endpoint_login(app.current_request)


@app.route('/api/auth', methods=['DELETE'], cors=True)
def logout():
    return auth.endpoint_logout(app.current_request)


# USERS
@app.route('/api/user/me', methods=['GET'], cors=True)
def get_me():
    return users.endpoint_get_me(app.current_request)


@app.route('/api/user', methods=['GET'], cors=True)
def list_users():
    """
    admin operation
    """
    return users.endpoint_list_users(app.current_request)


@app.route('/api/user/{user_id}', methods=['PUT'], cors=True)
def update_user(user_id):
    """
    the user themself or admin
    """
    return users.endpoint_update_user(app.current_request, user_id)


# FRANCHISES
@app.route('/api/franchise', methods=['POST'], cors=True)
def create_franchise():
    """
    admin operation
    """
    return franchises.endpoint_create_franchise(app.current_request)


@app.route('/api/franchise', methods=['GET'], cors=True)
def list_franchises():
    return franchises.endpoint_list_franchises(app.current_request)


@app.route('/api/franchise/user/{user_id}', methods=['GET'], cors=True)
def list_user_franchises(user_id):
    return franchises.endpoint_list_user_franchises(app.current_request, user_id)


@app.route('/api/franchise/{franchise_id}/store', methods=['POST'], cors=True)
def create_store(franchise_id):
    """
    franchisee of the franchise or admin
    """
    return franchises.endpoint_create_store(app.current_request, franchise_id)


@app.route('/api/franchise/{franchise_id}/store/{store_id}', methods=['DELETE'], cors=True)
def close_store(franchise_id, store_id):
    """
    franchisee of the franchise or admin
    """
    return franchises.endpoint_close_store(app.current_request, franchise_id, store_id)


# MENU
@app.route('/api/order/menu', methods=['GET'], cors=True)
def get_menu():
    return menu_items.endpoint_get_menu(app.current_request)


@app.route('/api/order/menu', methods=['PUT'], cors=True)
def add_menu_item():
    """
    admin operation
    """
    return menu_items.endpoint_add_menu_item(app.current_request)


# ORDERS
@app.route('/api/order', methods=['POST'], cors=True)
def create_order():
    return orders.endpoint_create_order(app.current_request)


@app.route('/api/order', methods=['GET'], cors=True)
def list_orders():
    """
    diner gets own orders, newest first
    """
    return orders.endpoint_list_orders(app.current_request)
