import functools
import os
import time
from random import uniform

import boto3 as boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from chalicelib.utils import exceptions
from chalicelib.utils.boto_clients import aws_config_ddb
from chalicelib.utils.logger import logger, log_exception

# For safe db operations
RETRY_EXCEPTIONS = ('ProvisionedThroughputExceededException', 'ThrottlingException')
need_return_capacity = ('put_item', 'get_item', 'update_item', 'delete_item', 'query')
CONDITIONAL_CHECK_FAILED = 'ConditionalCheckFailedException'
SENSITIVE_ATTRS = ('password_hash',)
REDACTED = '***'

_DB = None


def error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def loggable_kwargs(kwargs: dict) -> dict:
    """
    Request kwargs for the debug log.
    A put Item is reduced to its key and sensitive update values are masked
    """
    loggable = dict(kwargs)
    if 'Item' in loggable:
        loggable['Item'] = {key: loggable['Item'].get(key) for key in ('partkey', 'sortkey', 'record_type')}
    if 'ExpressionAttributeValues' in loggable:
        loggable['ExpressionAttributeValues'] = {
            name: REDACTED if name.lstrip(':') in SENSITIVE_ATTRS else value
            for name, value in loggable['ExpressionAttributeValues'].items()
        }
    return loggable


def exp_db_backoff(func):
    """
        should be used for any atomic
        get/put item in the code
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f'{func.__name__}:: args={args}, kwargs={loggable_kwargs(kwargs)}')
        max_retries = 15
        timeout_seed = uniform(0.1, 0.99)

        if func.__name__ in need_return_capacity:
            kwargs.update({'ReturnConsumedCapacity': 'TOTAL'})
        else:
            raise RuntimeError("This decorator only for DynamoDB methods")

        for retries in range(max_retries):
            try:
                result = func(*args, **kwargs)
                logger.info(f'{func.__name__}:: SUCCESS')
                return result

            except ClientError as e:
                if error_code(e) not in RETRY_EXCEPTIONS:
                    if error_code(e) != CONDITIONAL_CHECK_FAILED:
                        log_exception(e, msg=f'Got exception while trying to {func.__name__}: ')
                    raise
                logger.warning(f'{func.__name__}:: throttled, retry {retries + 1} of {max_retries}')
                time.sleep(min(timeout_seed * 2 ** retries, 10))

        raise exceptions.NumberOfRetriesExceeded(
            f"MaxNumber={max_retries} of DB retries has exceeded"
        )

    return wrapper


def get_table(table_name: str) -> boto3.session.Session.resource:
    if os.environ.get('ENDPOINT_URL'):
        gl_table = boto3.resource('dynamodb', endpoint_url=os.environ.get('ENDPOINT_URL')).Table(table_name)
    else:
        gl_table = boto3.resource('dynamodb', config=aws_config_ddb).Table(table_name)

    gl_table.put_item = exp_db_backoff(gl_table.put_item)
    gl_table.get_item = exp_db_backoff(gl_table.get_item)
    gl_table.update_item = exp_db_backoff(gl_table.update_item)
    gl_table.delete_item = exp_db_backoff(gl_table.delete_item)
    gl_table.query = exp_db_backoff(gl_table.query)

    return gl_table


def get_gen_table():
    global _DB
    if _DB is None:
        _DB = get_table(os.environ.get('GEN_TABLE_NAME'))
    return _DB


def reset_gen_table():
    global _DB
    _DB = None


def put_db_record(item: dict, table=get_gen_table):
    table().put_item(Item=item)


def put_unique_db_record(item: dict, table=get_gen_table) -> bool:
    """
    Puts the item only if no item with the same partkey/sortkey exists
    :return:
    False if the key is already taken
    """
    try:
        table().put_item(Item=item, ConditionExpression=Attr('partkey').not_exists())
    except ClientError as error:
        if error_code(error) == CONDITIONAL_CHECK_FAILED:
            logger.info(f"put_unique_db_record ::: partkey={item.get('partkey')} "
                        f"sortkey={item.get('sortkey')} already exists")
            return False
        raise
    return True


def update_db_record(key: dict, update_body: dict, allowed_attrs_to_update: list,
                     allowed_attrs_to_delete: list, condition_expression=None, table=get_gen_table):
    set_expr, expr_attr_values, remove_expr, expr_attr_names = generate_update_expression(
        update_body=update_body,
        allowed_attrs_to_update=allowed_attrs_to_update,
        allowed_attrs_to_delete=allowed_attrs_to_delete
    )
    update_item_dict = {"Key": key, "ReturnValues": "ALL_NEW"}
    if condition_expression is not None:
        update_item_dict["ConditionExpression"] = condition_expression

    update_expr = ' '.join(expr for expr in (set_expr, remove_expr) if expr)
    if not update_expr:
        return None

    update_item_dict.update({"UpdateExpression": update_expr, "ExpressionAttributeNames": expr_attr_names})
    if expr_attr_values:
        update_item_dict["ExpressionAttributeValues"] = expr_attr_values
    try:
        return table().update_item(**update_item_dict).get('Attributes')
    except ClientError as error:
        if error_code(error) == CONDITIONAL_CHECK_FAILED:
            raise exceptions.ConditionNotMet(f'update of {key} rejected by condition')
        raise


def generate_update_expression(update_body: dict, allowed_attrs_to_update: list, allowed_attrs_to_delete: list):
    """
    Generate expressions to update and delete attributes.
    if a key of update_body is empty - the attribute is deleted, else - attribute is updated
    """
    expr_attr_values = {}
    expr_attr_names = {}
    set_parts = []
    remove_parts = []
    for field in allowed_attrs_to_update:
        field_value = update_body.get(field, None)
        if field_value is None:
            continue
        expr_attr_names[f'#{field}'] = field
        # if field is in update_body but is equal to empty string, list etc. - delete field
        if field_value in ['', [], {}] and field in allowed_attrs_to_delete:
            remove_parts.append(f'#{field}')
        else:
            expr_attr_values[f':{field}'] = field_value
            set_parts.append(f'#{field}=:{field}')

    set_expr = f"SET {', '.join(set_parts)}" if set_parts else None
    remove_expr = f"REMOVE {', '.join(remove_parts)}" if remove_parts else None
    return set_expr, expr_attr_values, remove_expr, expr_attr_names


def append_to_list_attr(key: dict, attr: str, values: list, condition_expression=None, table=get_gen_table):
    update_item_dict = {
        "Key": key,
        "UpdateExpression": f"SET #{attr} = list_append(if_not_exists(#{attr}, :empty), :values)",
        "ExpressionAttributeNames": {f'#{attr}': attr},
        "ExpressionAttributeValues": {':values': values, ':empty': []},
        "ReturnValues": "ALL_NEW"
    }
    if condition_expression is not None:
        update_item_dict["ConditionExpression"] = condition_expression
    try:
        return table().update_item(**update_item_dict).get('Attributes')
    except ClientError as error:
        if error_code(error) == CONDITIONAL_CHECK_FAILED:
            raise exceptions.ConditionNotMet(f'append to {attr} of {key} rejected by condition')
        raise


def delete_db_record(key: dict, condition_expression=None, table=get_gen_table):
    delete_item_dict = {"Key": key}
    if condition_expression is not None:
        delete_item_dict["ConditionExpression"] = condition_expression
    try:
        table().delete_item(**delete_item_dict)
    except ClientError as error:
        if error_code(error) == CONDITIONAL_CHECK_FAILED:
            raise exceptions.ConditionNotMet(f'delete of {key} rejected by condition')
        raise


def get_db_item(partkey, sortkey, consistent_read=False, table=get_gen_table):
    if not partkey or not sortkey:
        # DynamoDB rejects empty key attributes, no such record can exist
        logger.info(f"get_db_item ::: empty key partkey={partkey!r} sortkey={sortkey!r}")
        raise exceptions.RecordNotFound(f'record partkey={partkey!r} sortkey={sortkey!r} not found')
    result = table().get_item(
        Key={
            'partkey': partkey,
            'sortkey': sortkey
        },
        ConsistentRead=consistent_read
    )

    if result.__contains__('Item'):
        return result['Item']
    else:
        logger.info(f"get_db_item ::: record partkey={partkey} sortkey={sortkey} not found")
        raise exceptions.RecordNotFound(f'record partkey={partkey} sortkey={sortkey} not found')


def query_items_paginated(key_condition_expression, limit=None, start_key=None, scan_forward=True,
                          table=get_gen_table):
    kwargs = {'KeyConditionExpression': key_condition_expression, 'ScanIndexForward': scan_forward}
    if limit:
        kwargs['Limit'] = int(limit)
    if start_key:
        kwargs['ExclusiveStartKey'] = start_key

    resp = table().query(**kwargs)
    return resp['Items'], resp.get('LastEvaluatedKey')


def query_items_paged(key_condition_expression, scan_forward=True, table=get_gen_table):
    """
    All items of the key condition, follows LastEvaluatedKey past the 1mb page limit
    """
    all_items = []
    start_key = None
    while True:
        items, start_key = query_items_paginated(
            key_condition_expression, start_key=start_key, scan_forward=scan_forward, table=table)
        all_items.extend(items)
        if start_key is None:
            return all_items
