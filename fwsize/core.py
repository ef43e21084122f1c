from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from fwsize.const import APP_NAME, ENV_CONFIG_DIR
from fwsize.helpers import get_str_env, user_config_dir

if TYPE_CHECKING:
    from fwsize.analyze_memory.symbols import SymbolStore

_LOGGER = logging.getLogger(__name__)


class FwsizeError(Exception):
    """General fwsize exception occurred."""


class AnalysisInputError(FwsizeError):
    """A binary or map file given for analysis is missing or unreadable."""


class ToolError(FwsizeError):
    """An external toolchain command could not be run or exited non-zero."""


class ToolchainError(FwsizeError):
    """The toolchain binaries could not be resolved."""


class CacheError(FwsizeError):
    """Reading or writing the analysis cache failed."""


class CacheCorruptError(CacheError):
    """A cache artifact exists but could not be decoded."""


class SymbolStoreEmptyError(FwsizeError):
    """A query needed symbols but no analysis has populated the store."""


class InvalidAddressError(FwsizeError):
    """An address string could not be parsed."""


class FwsizeCore:
    def __init__(self) -> None:
        from fwsize.analyze_memory.symbols import SymbolStore

        # All symbols of the most recent analysis
        self.symbols: SymbolStore = SymbolStore()
        # Explicit per-application directory, overrides environment and platform
        self.config_path: Path | None = None
        self.verbose = False

    def reset(self) -> None:
        from fwsize.analyze_memory.symbols import SymbolStore

        self.symbols = SymbolStore()
        self.config_path = None
        self.verbose = False

    @property
    def config_dir(self) -> Path:
        if self.config_path is not None:
            return self.config_path
        if ENV_CONFIG_DIR in os.environ:
            return Path(get_str_env(ENV_CONFIG_DIR, None))
        return user_config_dir() / APP_NAME

    @property
    def cache_dir(self) -> Path:
        return self.config_dir / "cache"


CORE = FwsizeCore()
