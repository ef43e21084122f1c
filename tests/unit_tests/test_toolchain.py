from collections.abc import Generator
import io
from pathlib import Path
import subprocess
import sys
import time
from unittest.mock import MagicMock, Mock, patch

import pytest

from fwsize.analyze_memory.models import ToolchainPaths
from fwsize.analyze_memory.toolchain import (
    ToolchainConfig,
    count_string_lines,
    guess_from_root,
    nm_args,
    objdump_args,
    resolve_toolchain,
    run_tool,
)
from fwsize.core import ToolchainError, ToolError

TOOLS = ("nm", "objdump", "strings")


@pytest.fixture(autouse=True)
def posix_names() -> Generator[None, None, None]:
    with patch("fwsize.analyze_memory.toolchain.IS_WINDOWS", False):
        yield


@pytest.fixture
def mock_which() -> Generator[Mock, None, None]:
    with patch(
        "fwsize.analyze_memory.toolchain.shutil.which", return_value=None
    ) as mock:
        yield mock


@pytest.fixture
def no_common_roots() -> Generator[None, None, None]:
    with patch("fwsize.analyze_memory.toolchain.COMMON_ROOTS_POSIX", []):
        yield


def _install(bin_dir: Path, tools: tuple[str, ...] = TOOLS) -> dict[str, str]:
    bin_dir.mkdir(parents=True, exist_ok=True)
    paths = {}
    for tool in tools:
        path = bin_dir / f"arm-none-eabi-{tool}"
        path.write_text("")
        paths[tool] = str(path)
    return paths


@pytest.mark.parametrize(
    "root, expected",
    (
        ("/opt/arm", "/opt/arm/bin/arm-none-eabi-nm"),
        ("/opt/arm/bin", "/opt/arm/bin/arm-none-eabi-nm"),
        ("/opt/arm/BIN", "/opt/arm/BIN/arm-none-eabi-nm"),
    ),
)
def test_guess_from_root(root: str, expected: str) -> None:
    assert Path(guess_from_root(root, "nm")) == Path(expected)


def test_guess_from_root__windows() -> None:
    with patch("fwsize.analyze_memory.toolchain.IS_WINDOWS", True):
        actual = guess_from_root("/toolchain", "objdump")

    assert Path(actual).name == "arm-none-eabi-objdump.exe"


def test_resolve_toolchain__explicit_paths(tmp_path: Path, mock_which: Mock) -> None:
    paths = _install(tmp_path / "custom")

    actual = resolve_toolchain(
        ToolchainConfig(
            nm_path=paths["nm"],
            objdump_path=paths["objdump"],
            strings_path=paths["strings"],
        )
    )

    assert actual == ToolchainPaths(
        nm_path=paths["nm"],
        objdump_path=paths["objdump"],
        strings_path=paths["strings"],
    )
    mock_which.assert_not_called()


def test_resolve_toolchain__missing_explicit_path(tmp_path: Path) -> None:
    missing = tmp_path / "nope" / "arm-none-eabi-nm"

    with pytest.raises(ToolchainError, match="Toolchain path not found"):
        resolve_toolchain(ToolchainConfig(nm_path=str(missing)))


@pytest.mark.parametrize("use_bin", (False, True))
def test_resolve_toolchain__root(tmp_path: Path, use_bin: bool) -> None:
    paths = _install(tmp_path / "gcc-arm" / "bin")
    root = tmp_path / "gcc-arm"
    if use_bin:
        root = root / "bin"

    actual = resolve_toolchain(
        ToolchainConfig(auto_detect=False, toolchain_root=str(root))
    )

    assert actual.nm_path == paths["nm"]
    assert actual.objdump_path == paths["objdump"]
    assert actual.strings_path == paths["strings"]


def test_resolve_toolchain__explicit_path_wins_over_root(tmp_path: Path) -> None:
    _install(tmp_path / "root" / "bin")
    custom = _install(tmp_path / "custom", tools=("nm",))

    actual = resolve_toolchain(
        ToolchainConfig(toolchain_root=str(tmp_path / "root"), nm_path=custom["nm"])
    )

    assert actual.nm_path == custom["nm"]
    assert actual.objdump_path == str(
        tmp_path / "root" / "bin" / "arm-none-eabi-objdump"
    )


def test_resolve_toolchain__not_configured(tmp_path: Path, mock_which: Mock) -> None:
    _install(tmp_path / "partial" / "bin", tools=("nm", "objdump"))

    with pytest.raises(ToolchainError, match="Toolchain paths are not configured."):
        resolve_toolchain(
            ToolchainConfig(
                auto_detect=False, toolchain_root=str(tmp_path / "partial")
            )
        )
    mock_which.assert_not_called()


def test_resolve_toolchain__from_path(mock_which: Mock) -> None:
    mock_which.side_effect = lambda name: f"/usr/bin/{name}"

    actual = resolve_toolchain()

    assert actual == ToolchainPaths(
        nm_path="/usr/bin/arm-none-eabi-nm",
        objdump_path="/usr/bin/arm-none-eabi-objdump",
        strings_path="/usr/bin/arm-none-eabi-strings",
    )


def test_resolve_toolchain__partial_root_falls_back_to_path(
    tmp_path: Path, mock_which: Mock
) -> None:
    _install(tmp_path / "partial" / "bin", tools=("nm",))
    mock_which.side_effect = lambda name: f"/usr/bin/{name}"

    actual = resolve_toolchain(ToolchainConfig(toolchain_root=str(tmp_path / "partial")))

    assert actual.nm_path == "/usr/bin/arm-none-eabi-nm"


def test_resolve_toolchain__common_root(tmp_path: Path, mock_which: Mock) -> None:
    paths = _install(tmp_path / "opt" / "gcc-arm-none-eabi-10.3" / "bin")

    with patch(
        "fwsize.analyze_memory.toolchain.COMMON_ROOTS_POSIX",
        [str(tmp_path / "missing"), str(tmp_path / "opt")],
    ):
        actual = resolve_toolchain()

    assert actual.nm_path == paths["nm"]
    assert actual.strings_path == paths["strings"]


def test_resolve_toolchain__not_found(mock_which: Mock, no_common_roots: None) -> None:
    with pytest.raises(
        ToolchainError, match="Failed to detect arm-none-eabi- toolchain on PATH."
    ):
        resolve_toolchain()


def test_tool_args() -> None:
    assert objdump_args("fw.elf") == ["-h", "fw.elf"]
    assert nm_args("fw.elf") == ["-S", "--size-sort", "fw.elf"]


def test_run_tool() -> None:
    completed = subprocess.CompletedProcess(
        args=[], returncode=0, stdout=b"ok \xff\n", stderr=b""
    )
    with patch(
        "fwsize.analyze_memory.toolchain.subprocess.run", return_value=completed
    ) as mock_run:
        actual = run_tool("/bin/nm", ["-S", "fw.elf"], timeout=5)

    assert actual == "ok \ufffd\n"
    mock_run.assert_called_once_with(
        ["/bin/nm", "-S", "fw.elf"], capture_output=True, timeout=5, check=False
    )


def test_run_tool__failure() -> None:
    completed = subprocess.CompletedProcess(
        args=[],
        returncode=1,
        stdout=b"",
        stderr=b"nm: fw.elf: file format not recognized\n",
    )
    with (
        patch("fwsize.analyze_memory.toolchain.subprocess.run", return_value=completed),
        pytest.raises(
            ToolError, match="/bin/nm failed: nm: fw.elf: file format not recognized"
        ),
    ):
        run_tool("/bin/nm", ["fw.elf"])


def test_run_tool__timeout() -> None:
    with (
        patch(
            "fwsize.analyze_memory.toolchain.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="nm", timeout=2),
        ),
        pytest.raises(ToolError, match="timed out after 2 seconds"),
    ):
        run_tool("/bin/nm", ["fw.elf"], timeout=2)


def test_run_tool__cannot_start(tmp_path: Path) -> None:
    with pytest.raises(ToolError, match="Failed to run"):
        run_tool(str(tmp_path / "missing-tool"), [])


def test_count_string_lines(tmp_path: Path) -> None:
    script = tmp_path / "strings.py"
    script.write_text("for index in range(7):\n    print('string', index)\n")

    assert count_string_lines(sys.executable, str(script)) == 7


def test_count_string_lines__exit_code(tmp_path: Path) -> None:
    script = tmp_path / "strings.py"
    script.write_text("import sys\nprint('partial')\nsys.exit(3)\n")

    with pytest.raises(ToolError, match="failed with exit code 3"):
        count_string_lines(sys.executable, str(script))


def test_count_string_lines__cannot_start(tmp_path: Path) -> None:
    with pytest.raises(ToolError, match="Failed to run"):
        count_string_lines(str(tmp_path / "missing-tool"), "fw.elf")


def test_count_string_lines__timeout_while_reading(tmp_path: Path) -> None:
    script = tmp_path / "strings.py"
    script.write_text("import time\nprint('hello', flush=True)\ntime.sleep(30)\n")

    start = time.monotonic()
    with pytest.raises(ToolError, match="timed out after 0.5 seconds"):
        count_string_lines(sys.executable, str(script), timeout=0.5)

    assert time.monotonic() - start < 10


def test_count_string_lines__timeout_after_output_closed() -> None:
    process = MagicMock()
    process.stdout = io.BytesIO(b"a\n")
    process.wait.side_effect = [
        subprocess.TimeoutExpired(cmd="strings", timeout=1),
        -9,
    ]

    with (
        patch(
            "fwsize.analyze_memory.toolchain.subprocess.Popen", return_value=process
        ),
        pytest.raises(ToolError, match="timed out after 1 seconds"),
    ):
        count_string_lines("/bin/strings", "fw.elf", timeout=1)
    process.kill.assert_called_once()

