"""Content addressed cache of analysis results."""

from __future__ import annotations

from dataclasses import asdict
import json
import logging
from pathlib import Path
from typing import Any

from fwsize.core import (
    AnalysisInputError,
    CacheCorruptError,
    CacheError,
    FwsizeError,
)
from fwsize.helpers import hash_file, hash_string, mkdir_p, write_file

from .const import (
    CACHE_ANALYSIS_PREFIX,
    CACHE_NO_MAP,
    CACHE_SYMBOLS_PREFIX,
    CACHE_VERSION,
)
from .models import AnalysisResult, Symbol, ToolchainPaths

_LOGGER = logging.getLogger(__name__)


def _hash_input(path: str) -> str:
    try:
        return hash_file(Path(path))
    except OSError as err:
        raise AnalysisInputError(f"Failed to open {path}: {err}") from err


def build_cache_key(
    binary_path: str, map_path: str | None, toolchain: ToolchainPaths
) -> str:
    """Derive the cache key from everything that affects an analysis.

    The key changes whenever the binary or map content changes, or a
    different set of tools is used.
    """
    binary_hash = _hash_input(binary_path)
    map_hash = _hash_input(map_path) if map_path else CACHE_NO_MAP
    raw = (
        f"ver:{CACHE_VERSION}|elf:{binary_hash}|map:{map_hash}"
        f"|tool:{toolchain.signature}"
    )
    return hash_string(raw)


class AnalysisCache:
    """Analysis results and full symbol lists stored as JSON per cache key."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)

    def _path(self, prefix: str, key: str) -> Path:
        return self.cache_dir / f"{prefix}-{key}.json"

    def result_path(self, key: str) -> Path:
        return self._path(CACHE_ANALYSIS_PREFIX, key)

    def symbols_path(self, key: str) -> Path:
        return self._path(CACHE_SYMBOLS_PREFIX, key)

    def _load(self, path: Path) -> Any | None:
        if not path.exists():
            return None
        try:
            contents = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise CacheError(f"Failed to read cache {path}: {err}") from err
        try:
            return json.loads(contents)
        except json.JSONDecodeError as err:
            raise CacheCorruptError(f"Failed to parse cache {path}: {err}") from err

    def _store(self, path: Path, data: Any) -> None:
        try:
            mkdir_p(self.cache_dir)
            write_file(path, json.dumps(data))
        except FwsizeError as err:
            raise CacheError(str(err)) from err

    def load_result(self, key: str) -> AnalysisResult | None:
        """Load a cached analysis, None when nothing is cached under the key.

        Raises:
            CacheError: The artifact exists but cannot be read
            CacheCorruptError: The artifact is not a valid analysis result
        """
        path = self.result_path(key)
        if (data := self._load(path)) is None:
            return None
        try:
            return AnalysisResult.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise CacheCorruptError(f"Failed to parse cache {path}: {err}") from err

    def load_symbols(self, key: str) -> list[Symbol] | None:
        path = self.symbols_path(key)
        if (data := self._load(path)) is None:
            return None
        try:
            return [Symbol.from_dict(item) for item in data]
        except (KeyError, TypeError, ValueError, AttributeError) as err:
            raise CacheCorruptError(f"Failed to parse cache {path}: {err}") from err

    def store_result(self, key: str, result: AnalysisResult) -> None:
        path = self.result_path(key)
        self._store(path, result.to_dict())
        _LOGGER.debug("Stored analysis result at %s", path)

    def store_symbols(self, key: str, symbols: list[Symbol]) -> None:
        path = self.symbols_path(key)
        self._store(path, [asdict(symbol) for symbol in symbols])
        _LOGGER.debug("Stored %d symbols at %s", len(symbols), path)
