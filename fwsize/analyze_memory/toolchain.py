"""Toolchain utilities for firmware size analysis."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import shutil
import subprocess
import threading
import time
from typing import TYPE_CHECKING

from fwsize.core import ToolchainError, ToolError
from fwsize.helpers import IS_WINDOWS

from .models import ToolchainPaths

if TYPE_CHECKING:
    from collections.abc import Sequence
    from typing import IO

_LOGGER = logging.getLogger(__name__)

TOOLCHAIN_PREFIX = "arm-none-eabi-"
TOOL_NM = "nm"
TOOL_OBJDUMP = "objdump"
TOOL_STRINGS = "strings"

# Install locations searched after PATH
COMMON_ROOTS_WINDOWS = [
    r"C:\Program Files\Arm GNU Toolchain",
    r"C:\Program Files (x86)\Arm GNU Toolchain",
    r"C:\Program Files\GNU Arm Embedded Toolchain",
    r"C:\Program Files (x86)\GNU Arm Embedded Toolchain",
    r"C:\Program Files\gcc-arm-none-eabi",
    r"C:\Program Files (x86)\gcc-arm-none-eabi",
    r"C:\ARM\gcc-arm-none-eabi",
]
COMMON_ROOTS_POSIX = [
    "/usr",
    "/usr/local",
    "/opt",
    "/opt/arm",
    "/opt/gcc-arm-none-eabi",
]


@dataclass(frozen=True)
class ToolchainConfig:
    """User supplied toolchain settings, all optional."""

    auto_detect: bool = True
    toolchain_root: str | None = None
    nm_path: str | None = None
    objdump_path: str | None = None
    strings_path: str | None = None
    # Seconds allowed per tool invocation, None waits forever
    timeout: float | None = None


def _executable_name(tool_name: str) -> str:
    suffix = ".exe" if IS_WINDOWS else ""
    return f"{TOOLCHAIN_PREFIX}{tool_name}{suffix}"


def guess_from_root(root: str, tool_name: str) -> str:
    """Path a tool would have inside a toolchain root (or its bin directory)."""
    base = Path(root)
    if base.name.lower() != "bin":
        base = base / "bin"
    return str(base / _executable_name(tool_name))


def _resolve_configured(
    tool_name: str, explicit: str | None, root: str | None
) -> str | None:
    if explicit:
        if Path(explicit).exists():
            return explicit
        raise ToolchainError(f"Toolchain path not found: {explicit}")
    if root:
        candidate = guess_from_root(root, tool_name)
        if Path(candidate).exists():
            return candidate
    return None


def _resolve_from_config(config: ToolchainConfig) -> ToolchainPaths | None:
    nm_path = _resolve_configured(TOOL_NM, config.nm_path, config.toolchain_root)
    objdump_path = _resolve_configured(
        TOOL_OBJDUMP, config.objdump_path, config.toolchain_root
    )
    strings_path = _resolve_configured(
        TOOL_STRINGS, config.strings_path, config.toolchain_root
    )
    if nm_path and objdump_path and strings_path:
        return ToolchainPaths(
            nm_path=nm_path, objdump_path=objdump_path, strings_path=strings_path
        )
    return None


def _resolve_from_path() -> ToolchainPaths | None:
    found = [
        shutil.which(_executable_name(tool))
        for tool in (TOOL_NM, TOOL_OBJDUMP, TOOL_STRINGS)
    ]
    if not all(found):
        return None
    nm_path, objdump_path, strings_path = found
    return ToolchainPaths(
        nm_path=nm_path, objdump_path=objdump_path, strings_path=strings_path
    )


def _paths_from_bin(bin_dir: Path) -> ToolchainPaths | None:
    paths = [
        bin_dir / _executable_name(tool)
        for tool in (TOOL_NM, TOOL_OBJDUMP, TOOL_STRINGS)
    ]
    if not all(path.exists() for path in paths):
        return None
    nm_path, objdump_path, strings_path = (str(path) for path in paths)
    return ToolchainPaths(
        nm_path=nm_path, objdump_path=objdump_path, strings_path=strings_path
    )


def _resolve_from_common_roots() -> ToolchainPaths | None:
    roots = COMMON_ROOTS_WINDOWS if IS_WINDOWS else COMMON_ROOTS_POSIX
    for root in map(Path, roots):
        if (paths := _paths_from_bin(root / "bin")) is not None:
            return paths
        if not root.is_dir():
            continue
        # Versioned installs, e.g. /opt/gcc-arm-none-eabi-10.3/bin
        try:
            children = sorted(root.iterdir())
        except OSError as err:
            _LOGGER.debug("Could not scan %s: %s", root, err)
            continue
        for child in children:
            if child.is_dir() and (paths := _paths_from_bin(child / "bin")):
                return paths
    return None


def resolve_toolchain(config: ToolchainConfig | None = None) -> ToolchainPaths:
    """Resolve the nm, objdump and strings binaries to use.

    Explicit paths win, then tools under the configured root. When that does
    not yield all three, PATH and common install locations are searched
    unless auto detection is disabled.

    Raises:
        ToolchainError: An explicit path does not exist or nothing was found
    """
    config = config or ToolchainConfig()

    if (paths := _resolve_from_config(config)) is not None:
        _LOGGER.debug("Using configured toolchain: %s", paths.signature)
        return paths
    if not config.auto_detect:
        raise ToolchainError("Toolchain paths are not configured.")

    if (paths := _resolve_from_path()) is not None:
        _LOGGER.debug("Found toolchain on PATH: %s", paths.signature)
        return paths
    if (paths := _resolve_from_common_roots()) is not None:
        _LOGGER.debug("Found toolchain in install location: %s", paths.signature)
        return paths

    raise ToolchainError(f"Failed to detect {TOOLCHAIN_PREFIX} toolchain on PATH.")


def run_tool(
    program: str,
    args: Sequence[str],
    timeout: float | None = None,
) -> str:
    """Run a toolchain command and return its standard output.

    Args:
        program: Path of the tool to run
        args: Arguments passed to the tool
        timeout: Timeout in seconds, None to wait forever

    Returns:
        Standard output, decoded with invalid bytes replaced

    Raises:
        ToolError: The tool could not be started, timed out or exited non-zero
    """
    cmd = [program, *args]
    _LOGGER.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as err:
        raise ToolError(f"{program} timed out after {timeout} seconds") from err
    except OSError as err:
        raise ToolError(f"Failed to run {program}: {err}") from err

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        raise ToolError(f"{program} failed: {stderr}")
    return result.stdout.decode("utf-8", errors="replace")


def _count_lines(stream: IO[bytes], counts: list[int]) -> None:
    with stream:
        counts.append(sum(1 for _ in stream))


def count_string_lines(
    program: str,
    binary_path: str,
    timeout: float | None = None,
) -> int:
    """Count the lines the strings tool prints for a binary.

    Output is streamed, never held in memory as a whole. The timeout covers
    reading the output as well as waiting for the exit.

    Raises:
        ToolError: The tool could not be started, timed out or exited non-zero
    """
    _LOGGER.debug("Running: %s %s", program, binary_path)
    deadline = None if timeout is None else time.monotonic() + timeout
    try:
        process = subprocess.Popen(
            [program, binary_path],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
    except OSError as err:
        raise ToolError(f"Failed to run {program}: {err}") from err

    counts: list[int] = []
    # The reader owns stdout; a child of the tool may keep the pipe open
    # after the tool itself is killed
    reader = threading.Thread(
        target=_count_lines, args=(process.stdout, counts), daemon=True
    )
    reader.start()
    reader.join(timeout)
    try:
        if reader.is_alive():
            raise subprocess.TimeoutExpired(program, timeout)
        remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
        returncode = process.wait(timeout=remaining)
    except subprocess.TimeoutExpired as err:
        process.kill()
        process.wait()
        raise ToolError(f"{program} timed out after {timeout} seconds") from err

    if returncode != 0:
        raise ToolError(f"{program} failed with exit code {returncode}")
    return counts[0]


def objdump_args(binary_path: str) -> list[str]:
    return ["-h", binary_path]


def nm_args(binary_path: str) -> list[str]:
    return ["-S", "--size-sort", binary_path]

