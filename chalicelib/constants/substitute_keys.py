# db attribute -> api field, None drops the attribute from the api output
from_db = {
    'partkey': None,
    'sortkey': None,
    'record_type': None,
    'password_hash': None,
    'id_': 'id',
    'name_': 'name',
    'status_': 'status',
    'franchise_id': 'franchiseId',
    'store_id': 'storeId',
    'diner_id': 'dinerId',
    'menu_id': 'menuId',
    'external_confirmation_id': 'externalConfirmationId',
    'failure_reason': 'failureReason',
    'date_created': 'date'
}
