"""Conversion of raw JSON objects into typed entity attributes.

Each requested attribute is looked up by its external id (plain key,
JSON path, or ``parent__child`` complex name) and cast to the attribute's
type. Missing values are omitted from the converted object.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from adapters.lib import jsonpath
from adapters.lib.errors import InternalError
from adapters.lib.framework import AttributeConfig, AttributeType, EntityConfig

logger = logging.getLogger(__name__)

__all__ = [
    "ConversionError",
    "cast_to_bool",
    "cast_to_float",
    "cast_to_int",
    "cast_to_string",
    "parse_datetime",
    "parse_duration",
    "convert_object",
    "convert_objects",
]

_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"0", "f", "F", "FALSE", "false", "False"}

_FRACTION_PATTERN = re.compile(r"(\.\d{6})\d+")
_ISO_DURATION_PATTERN = re.compile(
    r"^(?P<sign>-)?P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)


class ConversionError(ValueError):
    """A value could not be cast to its attribute's type."""


def cast_to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value in _TRUE_STRINGS:
            return True
        if value in _FALSE_STRINGS:
            return False
        raise ConversionError(f"cannot parse {value!r} as bool")
    raise ConversionError(f"cannot cast {value!r} (type {type(value).__name__}) to bool")


def cast_to_float(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as e:
            raise ConversionError(f"cannot parse {value!r} as float") from e
    raise ConversionError(f"cannot cast {value!r} (type {type(value).__name__}) to float")


def cast_to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ConversionError(f"cannot cast {value!r} (type bool) to int64")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ConversionError(f"cannot cast non-integral {value!r} to int64")
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as e:
            raise ConversionError(f"cannot parse {value!r} as int64") from e
    raise ConversionError(f"cannot cast {value!r} (type {type(value).__name__}) to int64")


def cast_to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), sort_keys=True)
    return str(value)


def parse_datetime(value: Any, *, local_timezone_offset: int = 0, allow_date_only: bool = False) -> datetime:
    """Parse an RFC 3339 timestamp (or a bare date when allowed).

    Values without a zone are interpreted in the configured local offset
    (seconds east of UTC).
    """
    if not isinstance(value, str):
        raise ConversionError(f"cannot parse {value!r} (type {type(value).__name__}) as datetime")

    local_zone = timezone(timedelta(seconds=local_timezone_offset))
    text = value.strip()

    if allow_date_only and len(text) == 10:
        try:
            parsed_date = date.fromisoformat(text)
        except ValueError:
            pass
        else:
            return datetime(parsed_date.year, parsed_date.month, parsed_date.day, tzinfo=local_zone)

    normalized = _FRACTION_PATTERN.sub(r"\1", text)
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as e:
        raise ConversionError(f"cannot parse {value!r} as datetime") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_zone)
    return parsed


def parse_duration(value: Any) -> timedelta:
    """Parse an ISO 8601 duration (``P1DT2H``) or a number of seconds."""
    if isinstance(value, bool):
        raise ConversionError(f"cannot cast {value!r} (type bool) to duration")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    if not isinstance(value, str):
        raise ConversionError(f"cannot cast {value!r} (type {type(value).__name__}) to duration")

    match = _ISO_DURATION_PATTERN.match(value.strip())
    if not match or value.strip() in ("P", "PT", "-P", "-PT"):
        raise ConversionError(f"cannot parse {value!r} as duration")

    parts = {name: float(amount) for name, amount in match.groupdict().items() if name != "sign" and amount}
    duration = timedelta(**parts)
    return -duration if match.group("sign") else duration


class _Converter:
    def __init__(
        self,
        *,
        complex_attribute_delimiter: Optional[str],
        json_path_attribute_names: bool,
        local_timezone_offset: int,
        allow_date_only: bool,
    ):
        self.delimiter = complex_attribute_delimiter
        self.json_path = json_path_attribute_names
        self.local_timezone_offset = local_timezone_offset
        self.allow_date_only = allow_date_only

    def lookup(self, obj: Dict[str, Any], external_id: str) -> Any:
        if self.json_path and external_id.startswith("$"):
            return jsonpath.evaluate(obj, external_id)

        if self.delimiter and self.delimiter in external_id:
            parent, child = external_id.split(self.delimiter, 1)
            parent_value = obj.get(parent)
            if isinstance(parent_value, dict):
                return parent_value.get(child)
            if isinstance(parent_value, list):
                return [item.get(child) for item in parent_value if isinstance(item, dict) and child in item]
            return None

        return obj.get(external_id)

    def cast(self, attribute: AttributeConfig, value: Any) -> Any:
        kind = attribute.type
        if kind == AttributeType.STRING:
            return cast_to_string(value)
        if kind == AttributeType.INT64:
            return cast_to_int(value)
        if kind == AttributeType.DOUBLE:
            return cast_to_float(value)
        if kind == AttributeType.BOOL:
            return cast_to_bool(value)
        if kind == AttributeType.DATETIME:
            return parse_datetime(
                value,
                local_timezone_offset=self.local_timezone_offset,
                allow_date_only=self.allow_date_only,
            )
        if kind == AttributeType.DURATION:
            return parse_duration(value)
        raise ConversionError(f"unsupported attribute type {kind!r}")

    def convert(self, entity: EntityConfig, obj: Dict[str, Any]) -> Dict[str, Any]:
        converted: Dict[str, Any] = {}

        for attribute in entity.attributes:
            value = self.lookup(obj, attribute.external_id)
            if value is None:
                continue

            try:
                if attribute.list:
                    if not isinstance(value, list):
                        value = [value]
                    converted[attribute.external_id] = [self.cast(attribute, item) for item in value if item is not None]
                else:
                    if isinstance(value, list):
                        raise ConversionError("attribute is not a list but the value is")
                    converted[attribute.external_id] = self.cast(attribute, value)
            except ConversionError as e:
                raise ConversionError(f"attribute {attribute.external_id}: {e}") from e

        for child in entity.child_entities:
            children = self.lookup(obj, child.external_id)
            if children is None:
                continue
            if isinstance(children, dict):
                children = [children]
            if not isinstance(children, list):
                raise ConversionError(f"child entity {child.external_id} is not a list of objects")
            converted[child.external_id] = [
                self.convert(child, item) for item in children if isinstance(item, dict)
            ]

        return converted


def convert_object(
    entity: EntityConfig,
    obj: Dict[str, Any],
    *,
    complex_attribute_delimiter: Optional[str] = None,
    json_path_attribute_names: bool = True,
    local_timezone_offset: int = 0,
    allow_date_only: bool = False,
) -> Dict[str, Any]:
    """Convert one object. Raises ConversionError on a bad value."""
    converter = _Converter(
        complex_attribute_delimiter=complex_attribute_delimiter,
        json_path_attribute_names=json_path_attribute_names,
        local_timezone_offset=local_timezone_offset,
        allow_date_only=allow_date_only,
    )
    return converter.convert(entity, obj)


def convert_objects(
    entity: EntityConfig,
    objects: List[Dict[str, Any]],
    **options: Any,
) -> List[Dict[str, Any]]:
    """Convert a page of objects for ``entity``.

    Raises:
        InternalError: If any value cannot be converted
    """
    try:
        return [convert_object(entity, obj, **options) for obj in objects]
    except (ConversionError, jsonpath.JSONPathError) as e:
        raise InternalError(
            f"Failed to convert datasource response objects: {e}.",
            entity=entity.external_id,
        ) from e
