"""Helpers for config validation using voluptuous."""

from __future__ import annotations

import voluptuous as vol

from fwsize.analyze_memory.const import SortKey, SortOrder
from fwsize.const import (
    CONF_AUTO_DETECT,
    CONF_BINARY_PATH,
    CONF_MAP_PATH,
    CONF_NM_PATH,
    CONF_OBJDUMP_PATH,
    CONF_ORDER,
    CONF_PAGE,
    CONF_PAGE_SIZE,
    CONF_QUERY,
    CONF_SORT,
    CONF_STRINGS_PATH,
    CONF_TIMEOUT,
    CONF_TOOLCHAIN,
    CONF_TOOLCHAIN_ROOT,
    DEFAULT_PAGE_SIZE,
)

# pylint: disable=invalid-name
Schema = vol.Schema
Required = vol.Required
Optional = vol.Optional
All = vol.All
Any = vol.Any
Invalid = vol.Invalid
MultipleInvalid = vol.MultipleInvalid


def boolean(value) -> bool:
    """Validate the given config option to be a boolean.

    This option allows a bunch of different ways of expressing boolean values:
     - instance of boolean
     - 'true'/'false'
     - 'yes'/'no'
     - 'enable'/disable
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        value = value.lower()
        if value in ("true", "yes", "on", "enable", "1"):
            return True
        if value in ("false", "no", "off", "disable", "0"):
            return False
    raise Invalid(
        f"Expected boolean value, but cannot convert {value} to a boolean. "
        "Please use 'true' or 'false'"
    )


def string(value) -> str:
    """Validate that a configuration value is a string. If not, automatically converts to a string.

    Note that this can be lossy, for example the input value 60.00 (float) will be turned into
    "60.0" (string). For values where this could be a problem `string_strict` has to be used.
    """
    if isinstance(value, (dict, list)):
        raise Invalid("string value cannot be dictionary or list.")
    if isinstance(value, bool):
        raise Invalid(
            "Auto-converted this value to boolean, please wrap the value in quotes."
        )
    if isinstance(value, str):
        return value
    if value is not None:
        return str(value)
    raise Invalid("string value is None")


def string_strict(value) -> str:
    """Like string, but only allows strings, and does not automatically convert other types to
    strings.
    """
    if isinstance(value, str):
        return value
    raise Invalid(
        f"Must be string, got {type(value)}. did you forget putting quotes around the value?"
    )


def int_(value) -> int:
    """Validate that the config option is an integer.

    Automatically also converts strings to ints.
    """
    if isinstance(value, bool):
        raise Invalid(f"Expected integer, but got boolean {value}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if int(value) == value:
            return int(value)
        raise Invalid(
            f"This option only accepts integers with no fractional part. Please remove the fractional part from {value}"
        )
    value = string_strict(value).strip().lower()
    base = 10
    if value.startswith("0x"):
        base = 16
    try:
        return int(value, base)
    except ValueError:
        # pylint: disable=raise-missing-from
        raise Invalid(f"Expected integer, but cannot parse {value} as an integer")


def clamp_min(minimum: int):
    """Validator raising values below `minimum` up to it."""

    def validator(value: int) -> int:
        return max(value, minimum)

    return validator


def positive_float(value) -> float:
    """Validate that this option is a positive float (greater than zero)."""
    if isinstance(value, bool):
        raise Invalid(f"Expected a number, but got boolean {value}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        # pylint: disable=raise-missing-from
        raise Invalid(f"Expected a number, but cannot parse {value}")
    if value <= 0:
        raise Invalid(f"Value {value} must be greater than zero")
    return value


def one_of(*values: str, lower: bool = False):
    """Validate that the config option is one of the given values.

    :param values: The valid values for this type
    :param lower: Whether to lowercase the given value before comparing
    """
    options = ", ".join(f"'{x}'" for x in values)

    def validator(value) -> str:
        value = string(value)
        if lower:
            value = value.lower()
        if value not in values:
            raise Invalid(f"Unknown value '{value}', valid options are {options}.")
        return value

    return validator


def optional_path(value) -> str | None:
    """A path string, with blank values meaning no path."""
    if value is None:
        return None
    return string_strict(value).strip() or None


TOOLCHAIN_SCHEMA = Schema(
    {
        Optional(CONF_AUTO_DETECT, default=True): boolean,
        Optional(CONF_TOOLCHAIN_ROOT): optional_path,
        Optional(CONF_NM_PATH): optional_path,
        Optional(CONF_OBJDUMP_PATH): optional_path,
        Optional(CONF_STRINGS_PATH): optional_path,
        Optional(CONF_TIMEOUT): Any(positive_float, None),
    }
)

SYMBOL_QUERY_SCHEMA = Schema(
    {
        Optional(CONF_QUERY): Any(None, string),
        Optional(CONF_PAGE, default=1): All(int_, clamp_min(1)),
        Optional(CONF_PAGE_SIZE, default=DEFAULT_PAGE_SIZE): All(int_, clamp_min(1)),
        Optional(CONF_SORT): one_of(*SortKey, lower=True),
        Optional(CONF_ORDER): one_of(*SortOrder, lower=True),
    }
)

ANALYZE_REQUEST_SCHEMA = Schema(
    {
        Required(CONF_BINARY_PATH): All(string_strict, vol.Length(min=1)),
        Optional(CONF_MAP_PATH): optional_path,
        Optional(CONF_TOOLCHAIN): Any(None, TOOLCHAIN_SCHEMA),
    }
)
