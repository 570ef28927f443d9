"""Unified API conversion: snake_case internals to camelCase responses."""

from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any


def snake_to_camel(snake_str: str) -> str:
    """Convert snake_case to camelCase."""
    components = snake_str.split("_")
    return components[0] + "".join(word.capitalize() for word in components[1:])


def _convert_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def convert_keys_to_camel_case(data: Any) -> Any:
    """Recursively convert dict keys to camelCase.

    Dataclasses become dicts, datetimes become ISO strings and enums their
    values, so the result is JSON serializable.
    """
    if isinstance(data, dict):
        return {
            snake_to_camel(key): convert_keys_to_camel_case(value)
            for key, value in data.items()
        }
    if isinstance(data, list | tuple):
        return [convert_keys_to_camel_case(item) for item in data]
    if is_dataclass(data) and not isinstance(data, type):
        return convert_keys_to_camel_case(asdict(data))
    return _convert_value(data)
