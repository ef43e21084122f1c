"""
fwsize Unittests
~~~~~~~~~~~~~~~~

Configuration file for unit tests.

If adding unit tests ensure that they are fast. Slower integration tests should
not be part of a unit test suite.

"""

from collections.abc import Generator
from pathlib import Path
import sys
from unittest.mock import Mock, patch

import pytest

from fwsize.analyze_memory.cache import AnalysisCache
from fwsize.analyze_memory.models import ToolchainPaths
from fwsize.analyze_memory.symbols import SymbolStore
from fwsize.const import ENV_CONFIG_DIR
from fwsize.core import CORE

here = Path(__file__).parent

# Configure location of package root
package_root = here.parent.parent
sys.path.insert(0, package_root.as_posix())

TOOLCHAIN = ToolchainPaths(
    nm_path="/toolchain/bin/arm-none-eabi-nm",
    objdump_path="/toolchain/bin/arm-none-eabi-objdump",
    strings_path="/toolchain/bin/arm-none-eabi-strings",
)


@pytest.fixture(autouse=True)
def reset_core():
    """Reset CORE after each test."""
    yield
    CORE.reset()


@pytest.fixture(autouse=True)
def isolated_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep the cache of every test out of the user's config directory."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv(ENV_CONFIG_DIR, str(config_dir))
    return config_dir


@pytest.fixture
def fixture_path() -> Path:
    """
    Location of all fixture files.
    """
    return here / "fixtures"


@pytest.fixture
def objdump_output(fixture_path: Path) -> str:
    return (fixture_path / "objdump_h.txt").read_text()


@pytest.fixture
def nm_output(fixture_path: Path) -> str:
    return (fixture_path / "nm_size_sort.txt").read_text()


@pytest.fixture
def map_contents(fixture_path: Path) -> str:
    return (fixture_path / "firmware.map").read_text()


@pytest.fixture
def binary_file(tmp_path: Path) -> Path:
    """A stand-in ELF binary; only its bytes matter for the cache key."""
    path = tmp_path / "firmware.elf"
    path.write_bytes(b"\x7fELF" + bytes(range(256)) * 4)
    return path


@pytest.fixture
def map_file(tmp_path: Path, map_contents: str) -> Path:
    path = tmp_path / "firmware.map"
    path.write_text(map_contents)
    return path


@pytest.fixture
def cache(tmp_path: Path) -> AnalysisCache:
    return AnalysisCache(tmp_path / "cache")


@pytest.fixture
def store() -> SymbolStore:
    return SymbolStore()


@pytest.fixture
def mock_resolve_toolchain() -> Generator[Mock, None, None]:
    """Mock resolve_toolchain for the analysis entry point."""
    with patch(
        "fwsize.analyze_memory.resolve_toolchain", return_value=TOOLCHAIN
    ) as mock:
        yield mock


@pytest.fixture
def mock_run_tool(objdump_output: str, nm_output: str) -> Generator[Mock, None, None]:
    """Mock run_tool, answering objdump and nm with the captured fixtures."""

    def run_tool(program, args, timeout=None):
        if program == TOOLCHAIN.objdump_path:
            return objdump_output
        if program == TOOLCHAIN.nm_path:
            return nm_output
        raise AssertionError(f"Unexpected tool {program}")

    with patch("fwsize.analyze_memory.run_tool", side_effect=run_tool) as mock:
        yield mock


@pytest.fixture
def mock_count_string_lines() -> Generator[Mock, None, None]:
    """Mock count_string_lines for the analysis entry point."""
    with patch("fwsize.analyze_memory.count_string_lines", return_value=42) as mock:
        yield mock


@pytest.fixture
def mock_toolchain(
    mock_resolve_toolchain: Mock,
    mock_run_tool: Mock,
    mock_count_string_lines: Mock,
) -> Mock:
    """All toolchain interaction mocked; returns the run_tool mock."""
    return mock_run_tool


@pytest.fixture
def toolchain_paths() -> ToolchainPaths:
    return TOOLCHAIN
