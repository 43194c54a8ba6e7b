import json
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

from chalicelib.utils.exceptions import ValidationError


def replace_dict_key(item, orig_key, new_key):
    if orig_key in item:
        if new_key not in item:
            item[new_key] = item[orig_key]
        del item[orig_key]


def substitute_keys(dict_to_process: dict, base_keys: dict, opt_dict=None):
    if opt_dict is None:
        opt_dict = {}
    all_keys = {**base_keys, **opt_dict}
    for key, val in all_keys.items():
        if val:
            replace_dict_key(dict_to_process, key, val)
        elif key in dict_to_process.keys():
            dict_to_process.pop(key, None)


def substitute_records(records_to_process, base_keys: dict, opt_dict: dict = None):
    for i, _ in enumerate(records_to_process):
        substitute_keys(
            dict_to_process=records_to_process[i],
            base_keys=base_keys,
            opt_dict=opt_dict
        )


def parse_raw_body(chalice_request) -> dict:
    request_raw_body = chalice_request.raw_body
    if not request_raw_body:
        return {}
    try:
        body = json.loads(request_raw_body)
    except ValueError:
        raise ValidationError('Request body is not a valid JSON document')
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return fix_values_from_ui(item=body)


def fix_values_from_ui(item):
    """
    Remove keys with None values and transform float to Decimal
    """
    item = cleanup_dict(item, [None])
    result = json.dumps(item)
    return json.loads(result, parse_float=Decimal)


def cleanup_dict(item: dict, list_of_values: list):
    """ Remove None fields in dict with. Supports one nesting.  """

    def sub_clean(sub_item):
        return {
            key: value
            for key, value in sub_item.items()
            if value not in list_of_values
        }

    clean = {}
    for k, v in item.items():
        if isinstance(v, dict):
            nested = sub_clean(v)
            if len(nested.keys()) > 0:
                clean[k] = nested
        elif v not in list_of_values:
            clean[k] = v
    return clean


def to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def get_int_param(query_params: Optional[dict], name: str, default: int, minimum: int = 0) -> int:
    raw_value = (query_params or {}).get(name)
    if raw_value is None or raw_value == '':
        return default
    try:
        value = int(raw_value)
    except ValueError:
        raise ValidationError(f'Query parameter {name} must be an integer')
    if value < minimum:
        raise ValidationError(f'Query parameter {name} must be >= {minimum}')
    return value


def glob_to_regex(pattern: Optional[str]):
    """
    '*' matches any run of characters, everything else is literal, case insensitive
    """
    pattern = pattern or '*'
    return re.compile('^' + '.*'.join(re.escape(part) for part in pattern.split('*')) + '$', re.IGNORECASE)


def paginate(items: list, page: int, limit: int) -> Tuple[list, bool]:
    start = page * limit
    return items[start:start + limit], len(items) > start + limit
