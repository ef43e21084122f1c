from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import voluptuous as vol
import yaml

from fwsize.analyze_memory.toolchain import ToolchainConfig
import fwsize.config_validation as cv
from fwsize.const import (
    CONF_AUTO_DETECT,
    CONF_NM_PATH,
    CONF_OBJDUMP_PATH,
    CONF_STRINGS_PATH,
    CONF_TIMEOUT,
    CONF_TOOLCHAIN_ROOT,
)
from fwsize.core import FwsizeError
from fwsize.helpers import read_file

_LOGGER = logging.getLogger(__name__)


def _format_invalid(err: vol.Invalid) -> str:
    path = "->".join(str(part) for part in err.path)
    if path:
        return f"{err.msg} for [{path}]"
    return err.msg


def validate_config(schema: vol.Schema, data: Any) -> dict[str, Any]:
    """Validate `data` against a schema, raising FwsizeError when invalid."""
    try:
        return schema(data if data is not None else {})
    except vol.MultipleInvalid as err:
        messages = "; ".join(_format_invalid(error) for error in err.errors)
        raise FwsizeError(f"Invalid configuration: {messages}") from err
    except vol.Invalid as err:
        raise FwsizeError(f"Invalid configuration: {_format_invalid(err)}") from err


def toolchain_config_from_dict(data: dict[str, Any] | None) -> ToolchainConfig:
    config = validate_config(cv.TOOLCHAIN_SCHEMA, data)
    return ToolchainConfig(
        auto_detect=config[CONF_AUTO_DETECT],
        toolchain_root=config.get(CONF_TOOLCHAIN_ROOT),
        nm_path=config.get(CONF_NM_PATH),
        objdump_path=config.get(CONF_OBJDUMP_PATH),
        strings_path=config.get(CONF_STRINGS_PATH),
        timeout=config.get(CONF_TIMEOUT),
    )


def load_toolchain_config(path: Path) -> ToolchainConfig:
    """Load toolchain settings from a YAML file.

    Example:
        toolchain_root: /opt/gcc-arm-none-eabi
        auto_detect: false
        timeout: 60
    """
    text = read_file(Path(path))
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise FwsizeError(f"Invalid YAML in {path}: {err}") from err
    _LOGGER.debug("Loaded toolchain config from %s", path)
    return toolchain_config_from_dict(data)
