from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
import platform
import tempfile

_LOGGER = logging.getLogger(__name__)

IS_MACOS = platform.system() == "Darwin"
IS_WINDOWS = platform.system() == "Windows"

# Read size used when hashing inputs, keeps memory bounded for large binaries
HASH_CHUNK_SIZE = 64 * 1024


def get_bool_env(var, default=False):
    value = os.getenv(var, default)
    if isinstance(value, str):
        value = value.lower()
        if value in ["1", "true"]:
            return True
        if value in ["0", "false"]:
            return False
    return bool(value)


def get_str_env(var, default=None):
    return str(os.getenv(var, default))


def user_config_dir() -> Path:
    """Return the platform's base directory for per-user application config."""
    if IS_WINDOWS:
        if appdata := os.getenv("APPDATA"):
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if IS_MACOS:
        return Path.home() / "Library" / "Application Support"
    if xdg_config := os.getenv("XDG_CONFIG_HOME"):
        return Path(xdg_config)
    return Path.home() / ".config"


def mkdir_p(path: Path):
    if not path:
        # Empty path - means create current dir
        return
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        from fwsize.core import FwsizeError

        raise FwsizeError(f"Error creating directories {path}: {err}") from err


def read_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as err:
        from fwsize.core import FwsizeError

        raise FwsizeError(f"Error reading file {path}: {err}") from err
    except UnicodeDecodeError as err:
        from fwsize.core import FwsizeError

        raise FwsizeError(f"Error reading file {path}: {err}") from err


def _replace_file(src: Path, dst: Path) -> None:
    try:
        os.replace(src, dst)
    except OSError:
        if not dst.exists():
            raise
        # Destination may be locked against replacement (Windows), drop it first
        _LOGGER.debug("Replacing %s failed, removing it and retrying", dst)
        dst.unlink()
        os.replace(src, dst)


def _write_file(path: Path, text: str | bytes) -> None:
    """Atomically writes `text` to the given path.

    The data goes to a temporary sibling first and is flushed to disk before
    being renamed over the destination, so readers see either the old or the
    new content. Automatically creates all parent directories.
    """
    data = text
    if isinstance(text, str):
        data = text.encode()

    directory = path.parent
    directory.mkdir(exist_ok=True, parents=True)

    tmp_filename: Path | None = None
    missing_fchmod = False
    try:
        # Modern versions of Python tempfile create this file with mode 0o600
        with tempfile.NamedTemporaryFile(
            mode="wb", dir=directory, prefix=f".{path.name}.", delete=False
        ) as f_handle:
            tmp_filename = Path(f_handle.name)
            f_handle.write(data)
            f_handle.flush()
            os.fsync(f_handle.fileno())
            try:
                os.fchmod(f_handle.fileno(), 0o644)
            except AttributeError:
                # os.fchmod is not available on Windows
                missing_fchmod = True
        _replace_file(tmp_filename, path)
        if missing_fchmod:
            path.chmod(0o644)
    finally:
        if tmp_filename and tmp_filename.exists():
            try:
                tmp_filename.unlink()
            except OSError as err:
                # If we are cleaning up then something else went wrong, so
                # we should suppress likely follow-on errors in the cleanup
                _LOGGER.error(
                    "File replacement cleanup failed for %s while saving %s: %s",
                    tmp_filename,
                    path,
                    err,
                )


def write_file(path: Path, text: str | bytes) -> None:
    try:
        _write_file(path, text)
    except OSError as err:
        from fwsize.core import FwsizeError

        raise FwsizeError(f"Could not write file at {path}: {err}") from err


def hash_file(path: Path) -> str:
    """SHA-256 hex digest of a file, read in fixed-size chunks."""
    hasher = hashlib.sha256()
    with open(path, "rb") as f_handle:
        while chunk := f_handle.read(HASH_CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()


def hash_string(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
