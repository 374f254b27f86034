import logging
from uuid import uuid4, UUID
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from dateutil.parser import isoparse
from typing import Any, Dict, List, Optional, Union, get_type_hints, get_origin, get_args
from enum import Enum

logger = logging.getLogger(__name__)

# Constants for VersionedModel field groups
BIG_6_FIELDS = {'entity_id', 'version', 'previous_version',
                'changed_on', 'changed_by_id', 'active'}
BIG_6_UUID_FIELDS = ['entity_id', 'version',
                     'previous_version', 'changed_by_id']


def default_datetime():
    """
    Definition for default datetime
    """
    return datetime.now(timezone.utc)


def get_uuid_hex(_int=None):
    """
    Returns UUID in hex format. If _int is passed, it creates UUID with int base.
    """
    return uuid4().hex if _int is None else UUID(int=_int, version=4).hex


class ModelValidationError(Exception):
    """
    Exception raised when one or more validation errors occur in the model.

    Attributes:
        errors (list): A list of error messages returned from validation methods.
    """

    def __init__(self, errors):
        # Ensure errors is a list of messages
        if isinstance(errors, str):
            errors = [errors]
        elif not isinstance(errors, list):
            raise ValueError("Errors should be a string or a list of strings")
        self.errors = errors
        super().__init__(self.format_errors())

    def format_errors(self):
        return "\n".join(self.errors)

    def __str__(self):
        return self.format_errors()


def _convert_value_for_dict(v, convert_datetime_to_iso_string: bool):
    if convert_datetime_to_iso_string and isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, UUID):
        return v.hex
    if isinstance(v, Enum):
        return v.value
    return v


def _convert_from_db(v, expected_type) -> Any:
    """Convert stored strings back to enum or datetime values."""
    if not isinstance(v, str):
        return v

    if get_origin(expected_type) is Union:
        for arg in get_args(expected_type):
            if arg is type(None):
                continue
            converted = _convert_from_db(v, arg)
            if converted is not v:
                return converted
        return v

    if isinstance(expected_type, type) and issubclass(expected_type, Enum):
        try:
            return expected_type(v)
        except ValueError:
            return v

    if expected_type is datetime:
        try:
            return isoparse(v)
        except (ValueError, TypeError):
            return v

    return v


class _ModelMixin:
    """Serialization shared by versioned and non-versioned models."""

    @classmethod
    def fields(cls) -> List[str]:
        """
        Get a list of field names for this model.

        Returns:
            List[str]: A list of field names.
        """
        return [f.name for f in fields(cls)]

    def as_dict(self, convert_datetime_to_iso_string: bool = False) -> Dict[str, Any]:
        """
        Convert this model to a dictionary.

        Args:
            convert_datetime_to_iso_string (bool, optional): Whether to convert datetime to ISO strings.

        Returns:
            Dict[str, Any]: A dictionary representation of this model.
        """
        result = {}
        for name in self.fields():
            value = getattr(self, name)
            if isinstance(value, list):
                value = [_convert_value_for_dict(v, convert_datetime_to_iso_string) for v in value]
            elif isinstance(value, dict):
                value = {k: _convert_value_for_dict(v, convert_datetime_to_iso_string)
                         for k, v in value.items()}
            else:
                value = _convert_value_for_dict(value, convert_datetime_to_iso_string)
            result[name] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """
        Load a model from a stored document. Unknown keys (such as MongoDB's `_id`) are dropped.
        """
        model_fields = cls.fields()
        clean_data = {k: v for k, v in data.items() if k in model_fields}
        hints = get_type_hints(cls)

        for k, v in clean_data.items():
            if k in BIG_6_UUID_FIELDS:
                clean_data[k] = cls._convert_uuid_field(v)
            elif v is not None and hints.get(k):
                clean_data[k] = _convert_from_db(v, hints[k])

        return cls(**clean_data)

    @classmethod
    def _convert_uuid_field(cls, v) -> Any:
        """Convert a UUID field value."""
        if not v:
            return v
        if isinstance(v, UUID):
            return v.hex
        try:
            return UUID(v).hex
        except ValueError:
            logger.info(f"'{v}' is not a valid UUID.")
            return v

    def validate(self):
        """
        Validate all fields by calling corresponding `validate_<field_name>` methods if defined.
        Raise `ModelValidationError` if any validations fail.
        """
        errors = []
        for name in self.fields():
            validator = getattr(self, f"validate_{name}", None)
            if callable(validator):
                error = validator()
                if error:
                    errors.append(error)

        if errors:
            raise ModelValidationError(errors)


@dataclass(kw_only=True)
class VersionedModel(_ModelMixin):
    """A base class for versioned models with common (Big 6) attributes."""

    entity_id: str = field(default_factory=get_uuid_hex,
                           metadata={'field_type': 'entity_id'})
    version: str = field(default_factory=lambda: get_uuid_hex(
        0), metadata={'field_type': 'uuid'})
    previous_version: Optional[str] = field(
        default_factory=lambda: None, metadata={'field_type': 'uuid'})
    active: bool = True
    changed_by_id: str = field(default_factory=lambda: get_uuid_hex(
        0), metadata={'field_type': 'uuid'})
    changed_on: datetime = field(default_factory=default_datetime)

    def prepare_for_save(self, changed_by_id: Optional[str] = None):
        """
        Prepare this model for saving to the database.

        Args:
            changed_by_id (str): The ID of the identity making the change.
        """
        if not self.entity_id:
            self.entity_id = get_uuid_hex()
        if self.version:
            self.previous_version = self.version
        else:
            self.previous_version = get_uuid_hex(0)
        self.version = get_uuid_hex()
        self.changed_on = datetime.now(timezone.utc)

        if changed_by_id:
            self.changed_by_id = changed_by_id
        self.validate()

    @property
    def is_first_version(self) -> bool:
        return self.previous_version in (None, get_uuid_hex(0))
