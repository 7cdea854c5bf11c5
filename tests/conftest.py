"""
Shared test fixtures for the monolaunch test suite.

Provides temporary application directories, preferences, settings and
lock file paths that use real file I/O (no mocking of the filesystem).
"""

import json

import pytest
import toml


FIREFOX_DESKTOP = """\
[Desktop Entry]
Name=Firefox Web Browser
Comment=Browse the World Wide Web
GenericName=Web Browser
Exec=firefox %u
Icon=firefox
Type=Application

[Desktop Action new-window]
Name=New Window
Exec=firefox --new-window %u
"""

CODE_DESKTOP = """\
[Desktop Entry]
Name=Visual Studio Code
Comment=Code Editing. Redefined.
GenericName=Text Editor
Exec=/usr/share/code/code --unity-launch %F
Icon=vscode
"""

FILES_DESKTOP = """\
[Desktop Entry]
Name=Files
Comment=Access and organize files
Exec=nautilus --new-window %U
Icon=org.gnome.Nautilus
"""

TEMPLATE_DESKTOP = """\
[Desktop Entry]
Name=Abstract Template
Comment=Has no Exec line
Type=Application
"""


def write_desktop(directory, filename, text):
    path = directory / filename
    path.write_text(text)
    return path


@pytest.fixture
def tmp_applications(tmp_path):
    """Create a real applications directory with a few descriptors."""
    apps_dir = tmp_path / "applications"
    apps_dir.mkdir()
    write_desktop(apps_dir, "firefox.desktop", FIREFOX_DESKTOP)
    write_desktop(apps_dir, "code.desktop", CODE_DESKTOP)
    write_desktop(apps_dir, "nautilus.desktop", FILES_DESKTOP)
    write_desktop(apps_dir, "template.desktop", TEMPLATE_DESKTOP)
    return apps_dir


@pytest.fixture
def tmp_preferences(tmp_path, tmp_applications):
    """Create a real preferences JSON file with counts and an extra field."""
    prefs_path = tmp_path / "launcher-preferences"
    data = {
        "count": {
            str(tmp_applications / "code.desktop"): 5,
            str(tmp_applications / "nautilus.desktop"): 2,
        },
        "theme": {"accent": "teal"},
    }
    prefs_path.write_text(json.dumps(data, indent="\t"))
    return prefs_path


@pytest.fixture
def lock_path(tmp_path):
    """Path of a lock file that does not exist yet."""
    return tmp_path / "launcher-lock"


@pytest.fixture
def tmp_settings(tmp_path, tmp_applications, lock_path):
    """Create a real settings TOML file pointing everything into tmp_path."""
    settings_path = tmp_path / "settings.toml"
    data = {
        "paths": {
            "lock_file": str(lock_path),
            "preferences": str(tmp_path / "launcher-preferences"),
        },
        "index": {"directories": [str(tmp_applications)]},
        "instance": {"negotiation_timeout_ms": 100, "poll_interval_ms": 5},
    }
    settings_path.write_text(toml.dumps(data))
    return settings_path
