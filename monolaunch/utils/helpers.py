"""
Helper utilities for the monolaunch core.

Provides common functions used across the services:
- Settings loading (TOML, deep-merged over defaults)
- Atomic whole-file writes for the lock and preferences files
- Detached program launching
"""

import copy
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

import toml
from loguru import logger


DEFAULT_SETTINGS_PATH = Path.home() / ".config" / "monolaunch" / "settings.toml"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "paths": {
        "lock_file": "~/.launcher-lock",
        "preferences": "~/.launcher-preferences",
    },
    "index": {
        "directories": [
            "/usr/share/applications",
            "~/.local/share/applications",
        ],
    },
    "instance": {
        "negotiation_timeout_ms": 100,
        "poll_interval_ms": 10,
    },
    "launcher": {
        "service": False,
    },
}


def load_settings(settings_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load launcher settings from a TOML file.

    Args:
        settings_path: File to read. Defaults to
            ~/.config/monolaunch/settings.toml

    Returns:
        Dictionary containing settings with defaults applied.
        A missing or unparseable file yields the defaults.
    """
    defaults = copy.deepcopy(DEFAULT_SETTINGS)
    path = Path(settings_path) if settings_path else DEFAULT_SETTINGS_PATH

    if not path.exists():
        logger.debug(f"Settings file not found at {path}, using defaults")
        return defaults

    try:
        loaded = toml.load(path)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning(f"Could not load settings from {path}: {e}. Using default settings")
        return defaults

    return _deep_merge(defaults, loaded)


def _deep_merge(base: Dict, override: Dict) -> Dict:
    """
    Deep merge two dictionaries.

    Args:
        base: Base dictionary with defaults
        override: Dictionary with overrides

    Returns:
        Merged dictionary (override takes precedence)
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def resolve_path(value: Union[str, Path]) -> Path:
    """Expand ~ in a configured path."""
    return Path(value).expanduser()


def atomic_write_text(path: Union[str, Path], text: str) -> None:
    """
    Replace a file's contents in one step.

    The text is written to a temporary file in the same directory and
    renamed over the target, so readers see either the old or the new
    contents, never a partial write.

    Raises:
        OSError: If the directory is missing or not writable
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


def launch_program(command: str, cwd: Optional[Union[str, Path]] = None) -> subprocess.Popen:
    """
    Run a command line through the shell, detached from this process.

    The child gets its own session and no inherited stdio. It is never
    waited on.

    Args:
        command: Shell command line (e.g. a normalized Exec value)
        cwd: Working directory, defaults to the user's home

    Returns:
        The Popen handle of the spawned shell
    """
    return subprocess.Popen(
        command,
        shell=True,
        cwd=str(cwd or Path.home()),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        start_new_session=True,
    )
