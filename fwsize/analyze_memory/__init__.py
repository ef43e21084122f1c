"""Size analyzer for compiled firmware binaries."""

from __future__ import annotations

import logging
import os
from pathlib import Path
import stat
from typing import TYPE_CHECKING

from fwsize.core import AnalysisInputError, FwsizeError

from .aggregate import apply_region_totals, compute_section_totals, top_symbols
from .cache import AnalysisCache, build_cache_key
from .findings import compute_findings
from .models import (
    AnalysisMeta,
    AnalysisResult,
    AnalysisSummary,
    CacheMeta,
    MapContributions,
    Section,
    Symbol,
)
from .parsers import parse_map_file, parse_section_headers, parse_symbol_table
from .toolchain import (
    ToolchainConfig,
    count_string_lines,
    nm_args,
    objdump_args,
    resolve_toolchain,
    run_tool,
)

if TYPE_CHECKING:
    from .models import ToolchainPaths
    from .symbols import SymbolStore

_LOGGER = logging.getLogger(__name__)


def _normalize_path(path: str | None) -> str | None:
    if path is None:
        return None
    return path.strip() or None


def validate_inputs(binary_path: str, map_path: str | None) -> None:
    """Check that the binary and the optional map are readable regular files.

    Raises:
        AnalysisInputError: A path is empty, missing or not a file
    """
    if not binary_path:
        raise AnalysisInputError("Binary path is required.")
    for label, path in (("binary", binary_path), ("map", map_path)):
        if path is None:
            continue
        try:
            mode = os.stat(path).st_mode
        except OSError as err:
            raise AnalysisInputError(
                f"Failed to read {label} file {path}: {err}"
            ) from err
        if not stat.S_ISREG(mode):
            raise AnalysisInputError(
                f"{label.capitalize()} path must point to a file: {path}"
            )


class FirmwareAnalyzer:
    """Runs the toolchain over one binary and builds the analysis result."""

    def __init__(
        self,
        binary_path: str,
        map_path: str | None,
        toolchain: ToolchainPaths,
        timeout: float | None = None,
    ) -> None:
        self.binary_path = binary_path
        self.map_path = map_path
        self.toolchain = toolchain
        self.timeout = timeout

        self.sections: list[Section] = []
        self.symbols: list[Symbol] = []
        self.contributions = MapContributions()
        self.strings_count: int | None = None

    def analyze(self, cache_key: str) -> AnalysisResult:
        """Analyze the binary and return the uncached result."""
        self._parse_sections()
        self._parse_symbols()
        self._parse_map()
        self._count_strings()

        totals = apply_region_totals(
            compute_section_totals(self.sections), self.contributions.memory_regions
        )
        summary = AnalysisSummary(
            section_totals=totals,
            top_symbols=top_symbols(self.symbols),
            top_objects=self.contributions.top_objects,
            top_libraries=self.contributions.top_libraries,
            top_sections=self.contributions.top_sections,
            map_tree=self.contributions.map_tree,
            memory_regions=self.contributions.memory_regions,
            findings=compute_findings(
                self.symbols, self.sections, self.strings_count
            ),
        )
        return AnalysisResult(
            meta=AnalysisMeta(
                binary_path=self.binary_path,
                map_path=self.map_path,
                toolchain=self.toolchain,
                cache=CacheMeta(hit=False, key=cache_key),
            ),
            summary=summary,
            sections=self.sections,
        )

    def _parse_sections(self) -> None:
        output = run_tool(
            self.toolchain.objdump_path, objdump_args(self.binary_path), self.timeout
        )
        self.sections = parse_section_headers(output)
        _LOGGER.debug("Parsed %d sections", len(self.sections))

    def _parse_symbols(self) -> None:
        output = run_tool(
            self.toolchain.nm_path, nm_args(self.binary_path), self.timeout
        )
        self.symbols = parse_symbol_table(output)
        _LOGGER.debug("Parsed %d sized symbols", len(self.symbols))

    def _parse_map(self) -> None:
        if self.map_path is None:
            return
        _LOGGER.info("Parsing linker map file: %s", Path(self.map_path).name)
        try:
            contents = Path(self.map_path).read_text(encoding="utf-8", errors="replace")
        except OSError as err:
            raise AnalysisInputError(
                f"Failed to read map file {self.map_path}: {err}"
            ) from err
        self.contributions = parse_map_file(contents)

    def _count_strings(self) -> None:
        # Best effort, only feeds the STRING_COUNT finding
        try:
            self.strings_count = count_string_lines(
                self.toolchain.strings_path, self.binary_path, self.timeout
            )
        except FwsizeError as err:
            _LOGGER.debug("String extraction failed: %s", err)
            self.strings_count = None


def analyze_firmware(
    binary_path: str,
    map_path: str | None = None,
    toolchain: ToolchainConfig | None = None,
    *,
    store: SymbolStore,
    cache: AnalysisCache,
) -> AnalysisResult:
    """Analyze a firmware binary, serving from the cache when possible.

    On return the symbol store holds every symbol of this binary (or nothing,
    for a cache hit without a cached symbol list).

    Args:
        binary_path: Path to the ELF binary
        map_path: Optional GNU ld map file produced for the binary
        toolchain: Toolchain settings, auto detection when None
        store: Symbol store to replace with this binary's symbols
        cache: Cache to read and write

    Returns:
        The analysis result, with meta.cache telling whether it was a hit

    Raises:
        FwsizeError: Inputs, toolchain, tools or cache failed
    """
    binary_path = _normalize_path(binary_path) or ""
    map_path = _normalize_path(map_path)
    validate_inputs(binary_path, map_path)

    toolchain = toolchain or ToolchainConfig()
    paths = resolve_toolchain(toolchain)
    key = build_cache_key(binary_path, map_path, paths)

    if (result := cache.load_result(key)) is not None:
        _LOGGER.info("Cache hit for %s (%s)", binary_path, key[:12])
        result.meta.cache = CacheMeta(hit=True, key=key)
        store.replace(cache.load_symbols(key) or [])
        return result

    _LOGGER.info("Cache miss for %s, analyzing", binary_path)
    analyzer = FirmwareAnalyzer(binary_path, map_path, paths, toolchain.timeout)
    result = analyzer.analyze(key)
    store.replace(analyzer.symbols)

    cache.store_result(key, result)
    cache.store_symbols(key, analyzer.symbols)
    return result
