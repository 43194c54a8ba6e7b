from datetime import datetime
from typing import Tuple, Dict, List

from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.data import substitute_keys
from chalicelib.utils.logger import logger


def now_iso() -> str:
    return datetime.now().isoformat(timespec='microseconds')


class EntityBase:
    """
    One record of the general table.
    Children set the pk/sk templates, fill the validation maps and
    implement _get_pk_sk and _to_dict
    """
    pk = None
    sk = None

    # set on create, never part of an update
    required_immutable_fields_validation = {}
    # set on create and rewritten by every update
    required_mutable_fields_validation = {}
    # written only when not None
    optional_fields_validation = {}

    def __init__(self, id_):
        self.id_: str = id_
        self.record_type: str = ''
        self.db_record: Dict = {}

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk

    def _get_db_key(self) -> Dict:
        partkey, sortkey = self._get_pk_sk()
        return {'partkey': partkey, 'sortkey': sortkey}

    def _get_db_item(self) -> Dict:
        return utils_db.get_db_item(*self._get_pk_sk())

    def _to_dict(self) -> Dict:
        return {'id_': self.id_}

    def _init_db_record(self) -> None:
        self.db_record = {**self._get_db_key(), 'record_type': self.record_type, **self._to_dict()}

    def raise_validation_error(self, key):
        message = f'{self.record_type or "record"} field {key} is not valid'
        logger.error(f"raise_validation_error ::: {message}, {self.id_=}")
        raise exceptions.ValidationError(message)

    def _validate_db_record(self) -> None:
        """
        Checks db_record before it is put to the db,
        raises ValidationError on the first invalid field
        """
        mandatory = {**self.required_immutable_fields_validation, **self.required_mutable_fields_validation}
        for key, is_valid in mandatory.items():
            if not is_valid(self.db_record.get(key)):
                self.raise_validation_error(key)
        for key, is_valid in self.optional_fields_validation.items():
            value = self.db_record.get(key)
            if value is not None and not is_valid(value):
                self.raise_validation_error(key)

    def _get_validated_update_dict(self) -> Dict:
        """
        Mutable and optional fields for an update, invalid ones are left out
        """
        validation_dict = {**self.required_mutable_fields_validation, **self.optional_fields_validation}
        clean_dict = {}
        for key, value in self._to_dict().items():
            if key not in validation_dict or value is None:
                continue
            if validation_dict[key](value):
                clean_dict[key] = value
            else:
                logger.warning(f'_get_validated_update_dict ::: {key=} of {self.record_type} {self.id_} '
                               f'is not valid, left out of the update')
        return clean_dict

    def _create_db_record(self) -> None:
        self._init_db_record()
        self._validate_db_record()
        utils_db.put_db_record({key: value for key, value in self.db_record.items() if value is not None})
        logger.info(f"_create_db_record ::: {self.record_type} {self.id_} created at {self._get_pk_sk()}")

    def _update_fields_whitelist(self) -> List:
        return [*self.required_mutable_fields_validation, *self.optional_fields_validation]

    def _update_db_record(self, condition_expression=None) -> None:
        """
        Writes the mutable and optional fields back,
        condition_expression guards the write (ConditionNotMet when it fails)
        """
        self.date_updated = now_iso()
        utils_db.update_db_record(
            key=self._get_db_key(),
            update_body=self._get_validated_update_dict(),
            allowed_attrs_to_update=self._update_fields_whitelist(),
            allowed_attrs_to_delete=[],
            condition_expression=condition_expression
        )
        logger.info(f"_update_db_record ::: {self.record_type} {self.id_} updated at {self._get_pk_sk()}")

    def _to_ui(self) -> Dict:
        item = self._to_dict()
        substitute_keys(dict_to_process=item, base_keys=from_db)
        return item

    def to_ui(self) -> Dict:
        return self._to_ui()
