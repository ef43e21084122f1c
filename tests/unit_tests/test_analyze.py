import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from fwsize.analyze_memory import analyze_firmware, validate_inputs
from fwsize.analyze_memory.cache import AnalysisCache
from fwsize.analyze_memory.symbols import SymbolStore
from fwsize.analyze_memory.toolchain import ToolchainConfig
from fwsize.core import AnalysisInputError, CacheCorruptError, ToolError


def test_analyze_firmware__miss_then_hit(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    first = analyze_firmware(str(binary_file), store=store, cache=cache)

    assert first.meta.cache.hit is False
    assert mock_toolchain.call_count == 2
    assert len(store) == 11

    store.replace([])
    second = analyze_firmware(str(binary_file), store=store, cache=cache)

    assert second.meta.cache.hit is True
    assert second.meta.cache.key == first.meta.cache.key
    assert json.dumps(second.summary.to_dict()) == json.dumps(first.summary.to_dict())
    assert second.sections == first.sections
    # The hit is served without running the tools again
    assert mock_toolchain.call_count == 2
    assert len(store) == 11


def test_analyze_firmware__summary(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    result = analyze_firmware(str(binary_file), store=store, cache=cache)

    totals = result.summary.section_totals
    assert totals.flash_bytes == 20648
    assert totals.ram_bytes == 1424
    assert result.meta.binary_path == str(binary_file)
    assert result.meta.map_path is None
    assert len(result.sections) == 8
    assert result.summary.top_symbols[0].name == "main"
    assert result.summary.top_objects == []
    assert result.summary.map_tree == []
    assert [finding.id for finding in result.summary.findings] == [
        "RAM_PRESSURE",
        "FLOAT_BLOAT",
        "EXIDX",
        "STRING_COUNT",
    ]
    assert result.summary.findings[-1].value == 42


def test_analyze_firmware__with_map(
    binary_file: Path,
    map_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    result = analyze_firmware(
        str(binary_file), str(map_file), store=store, cache=cache
    )

    assert result.meta.map_path == str(map_file)
    assert result.summary.top_objects[0].name == "build/main.o"
    assert [library.name for library in result.summary.top_libraries] == [
        "libm.a",
        "libc_nano.a",
    ]
    assert result.summary.map_tree[0].name == "Objects"
    assert [region.name for region in result.summary.memory_regions] == [
        "FLASH",
        "RAM",
    ]
    # No region reports usage, so the overrides stay unset
    assert result.summary.section_totals.flash_region_bytes is None


def test_analyze_firmware__blank_map_path(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    result = analyze_firmware(
        f"  {binary_file}  ", "   ", store=store, cache=cache
    )

    assert result.meta.binary_path == str(binary_file)
    assert result.meta.map_path is None


def test_analyze_firmware__binary_change_misses(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    first = analyze_firmware(str(binary_file), store=store, cache=cache)
    binary_file.write_bytes(binary_file.read_bytes() + b"\x00")

    second = analyze_firmware(str(binary_file), store=store, cache=cache)

    assert second.meta.cache.hit is False
    assert second.meta.cache.key != first.meta.cache.key
    assert mock_toolchain.call_count == 4


def test_analyze_firmware__hit_without_symbols(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    first = analyze_firmware(str(binary_file), store=store, cache=cache)
    cache.symbols_path(first.meta.cache.key).unlink()

    second = analyze_firmware(str(binary_file), store=store, cache=cache)

    assert second.meta.cache.hit is True
    assert len(store) == 0


def test_analyze_firmware__corrupt_cache(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    first = analyze_firmware(str(binary_file), store=store, cache=cache)
    cache.result_path(first.meta.cache.key).write_text("{not json")

    with pytest.raises(CacheCorruptError):
        analyze_firmware(str(binary_file), store=store, cache=cache)


def test_analyze_firmware__strings_failure_is_absorbed(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
    mock_count_string_lines: Mock,
) -> None:
    mock_count_string_lines.side_effect = ToolError("strings failed")

    result = analyze_firmware(str(binary_file), store=store, cache=cache)

    assert "STRING_COUNT" not in [finding.id for finding in result.summary.findings]


def test_analyze_firmware__tool_failure_is_not_cached(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
) -> None:
    mock_toolchain.side_effect = ToolError("objdump failed: bad ELF")

    with pytest.raises(ToolError, match="bad ELF"):
        analyze_firmware(str(binary_file), store=store, cache=cache)

    assert not cache.cache_dir.exists() or not list(cache.cache_dir.iterdir())
    assert len(store) == 0


def test_analyze_firmware__passes_timeout(
    binary_file: Path,
    cache: AnalysisCache,
    store: SymbolStore,
    mock_toolchain: Mock,
    mock_resolve_toolchain: Mock,
) -> None:
    config = ToolchainConfig(timeout=2.5)

    analyze_firmware(str(binary_file), toolchain=config, store=store, cache=cache)

    mock_resolve_toolchain.assert_called_once_with(config)
    assert {call.args[2] for call in mock_toolchain.call_args_list} == {2.5}


@pytest.mark.parametrize("binary_path", ("", "   "))
def test_analyze_firmware__binary_required(
    binary_path: str, cache: AnalysisCache, store: SymbolStore
) -> None:
    with pytest.raises(AnalysisInputError, match="Binary path is required."):
        analyze_firmware(binary_path, store=store, cache=cache)


def test_validate_inputs__missing_binary(tmp_path: Path) -> None:
    with pytest.raises(AnalysisInputError, match="Failed to read binary file"):
        validate_inputs(str(tmp_path / "missing.elf"), None)


def test_validate_inputs__directory(tmp_path: Path) -> None:
    with pytest.raises(AnalysisInputError, match="Binary path must point to a file"):
        validate_inputs(str(tmp_path), None)


def test_validate_inputs__missing_map(binary_file: Path, tmp_path: Path) -> None:
    with pytest.raises(AnalysisInputError, match="Failed to read map file"):
        validate_inputs(str(binary_file), str(tmp_path / "missing.map"))


def test_validate_inputs__map_directory(binary_file: Path, tmp_path: Path) -> None:
    with pytest.raises(AnalysisInputError, match="Map path must point to a file"):
        validate_inputs(str(binary_file), str(tmp_path))


def test_validate_inputs__ok(binary_file: Path, map_file: Path) -> None:
    validate_inputs(str(binary_file), str(map_file))
