"""
Role/resource policy.

Roles are a tagged variant stored on the user record as a list of
``{'role': <name>, 'object_id': <franchise id or absent>}`` maps.
``is_allowed`` is a pure function of (roles, action, resource); ``authorize``
turns a Deny into ``Forbidden``.
"""
from typing import NamedTuple, Optional, Iterable, List, Dict

from chalicelib.constants.constants import ROLE_ADMIN, ROLE_DINER, ROLE_FRANCHISEE
from chalicelib.utils.exceptions import Forbidden
from chalicelib.utils.logger import logger

# Actions
CREATE_FRANCHISE = 'create_franchise'
CREATE_STORE = 'create_store'
CLOSE_STORE = 'close_store'
UPDATE_MENU = 'update_menu'
READ_PROFILE = 'read_profile'
UPDATE_PROFILE = 'update_profile'
LIST_USERS = 'list_users'
READ_USER_FRANCHISES = 'read_user_franchises'
CREATE_ORDER = 'create_order'
READ_ORDERS = 'read_orders'

ALL_ACTIONS = frozenset({
    CREATE_FRANCHISE, CREATE_STORE, CLOSE_STORE, UPDATE_MENU, READ_PROFILE, UPDATE_PROFILE,
    LIST_USERS, READ_USER_FRANCHISES, CREATE_ORDER, READ_ORDERS
})


class Role(NamedTuple):
    name: str
    franchise_id: Optional[str] = None

    @classmethod
    def diner(cls) -> 'Role':
        return cls(ROLE_DINER)

    @classmethod
    def admin(cls) -> 'Role':
        return cls(ROLE_ADMIN)

    @classmethod
    def franchisee(cls, franchise_id: str) -> 'Role':
        return cls(ROLE_FRANCHISEE, franchise_id)

    @classmethod
    def from_db(cls, record: Dict) -> 'Role':
        return cls(record.get('role'), record.get('object_id'))

    def to_db(self) -> Dict:
        if self.franchise_id is None:
            return {'role': self.name}
        return {'role': self.name, 'object_id': self.franchise_id}


class Resource(NamedTuple):
    franchise_id: Optional[str] = None
    owner_id: Optional[str] = None


NO_RESOURCE = Resource()


def roles_from_db(records: Optional[Iterable[Dict]]) -> List[Role]:
    return [Role.from_db(record) for record in records or []]


def _franchisee_allows(role: Role, action: str, resource: Resource, user_id: Optional[str]) -> bool:
    if action in (CREATE_STORE, CLOSE_STORE):
        return resource.franchise_id is not None and resource.franchise_id == role.franchise_id
    if action == READ_USER_FRANCHISES:
        return resource.owner_id is not None and resource.owner_id == user_id
    return False


def _diner_allows(action: str, resource: Resource, user_id: Optional[str]) -> bool:
    if action == CREATE_ORDER:
        return True
    if action in (READ_PROFILE, UPDATE_PROFILE, READ_USER_FRANCHISES, READ_ORDERS):
        return resource.owner_id is not None and resource.owner_id == user_id
    return False


def is_allowed(roles: Iterable[Role], action: str, resource: Resource = NO_RESOURCE,
               user_id: Optional[str] = None) -> bool:
    if action not in ALL_ACTIONS:
        return False
    for role in roles:
        if role.name == ROLE_ADMIN:
            return True
        if role.name == ROLE_FRANCHISEE and _franchisee_allows(role, action, resource, user_id):
            return True
        if role.name == ROLE_DINER and _diner_allows(action, resource, user_id):
            return True
    return False


def is_admin(identity) -> bool:
    return any(role.name == ROLE_ADMIN for role in identity.roles)


def authorize(identity, action: str, resource: Resource = NO_RESOURCE) -> None:
    if not is_allowed(identity.roles, action, resource, identity.user_id):
        logger.warning(f'authorize ::: denied {action=} {resource=} for user_id={identity.user_id}')
        raise Forbidden(f"not allowed to {action.replace('_', ' ')}")
    logger.debug(f'authorize ::: allowed {action=} {resource=} for user_id={identity.user_id}')
