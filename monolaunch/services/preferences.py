"""
Preference Service - Persist per-program usage counters.

The preferences file is a JSON document:

  {
      "count": {"/usr/share/applications/firefox.desktop": 12, ...},
      ...any other keys, kept as-is...
  }

Loading never fails: a missing or corrupt file gives empty counters.
Saving is best-effort: a failed write is logged and the old file stays intact.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from ..utils.helpers import atomic_write_text


DEFAULT_PREFERENCES_PATH = Path.home() / ".launcher-preferences"


@dataclass
class Preferences:
    """Usage counters plus any unrecognized top-level fields."""
    count: dict[str, int] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Preferences":
        if not isinstance(data, dict):
            logger.warning("Preferences document is not an object, using defaults")
            return cls()

        extra = {key: value for key, value in data.items() if key != "count"}
        raw_count = data.get("count", {})
        if not isinstance(raw_count, dict):
            logger.warning("Preferences 'count' is not an object, resetting counters")
            raw_count = {}

        count = {}
        for program_id, value in raw_count.items():
            # bool is an int subclass but never a valid counter
            if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
                count[program_id] = value
            else:
                logger.warning(f"Dropping invalid run count for {program_id}: {value!r}")

        return cls(count=count, extra=extra)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data["count"] = dict(self.count)
        return data


class PreferenceStore:
    """
    Loads and saves the preferences file.

    The store is mutated only by the running launcher instance, one
    increment at a time, so no locking is done here.

    Methods:
        load(): Read preferences from disk
        save(preferences): Write preferences to disk
        increment(program_id): Bump and persist a run counter
    """

    def __init__(self, path: Path | str = DEFAULT_PREFERENCES_PATH):
        self.path = Path(path)
        self.preferences = Preferences()

    def load(self) -> Preferences:
        """
        Read preferences from disk.

        Returns:
            Loaded Preferences, or empty defaults if the file is missing,
            unreadable or malformed. Never raises.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No preferences file at {self.path}, starting empty")
            self.preferences = Preferences()
            return self.preferences
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not read preferences from {self.path}: {e}")
            self.preferences = Preferences()
            return self.preferences

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Corrupt preferences file {self.path}: {e}")
            self.preferences = Preferences()
            return self.preferences

        self.preferences = Preferences.from_dict(data)
        logger.debug(f"Loaded {len(self.preferences.count)} run counts from {self.path}")
        return self.preferences

    def save(self, preferences: Preferences | None = None) -> bool:
        """
        Write the full preferences document.

        Args:
            preferences: What to save, defaults to the loaded preferences

        Returns:
            True if the file was written, False if the write failed
        """
        if preferences is not None:
            self.preferences = preferences

        text = json.dumps(self.preferences.to_dict(), indent="\t", ensure_ascii=False)
        try:
            atomic_write_text(self.path, text + "\n")
        except OSError:
            logger.exception(f"Failed to save preferences to {self.path}")
            return False
        return True

    def get_count(self, program_id: str) -> int:
        return self.preferences.count.get(program_id, 0)

    def increment(self, program_id: str) -> int:
        """
        Add one launch to a program's counter and persist it.

        Args:
            program_id: Descriptor path of the launched program

        Returns:
            The new run count
        """
        new_count = self.get_count(program_id) + 1
        self.preferences.count[program_id] = new_count
        self.save()
        logger.debug(f"Run count for {program_id} is now {new_count}")
        return new_count

    def clear(self, program_id: str | None = None) -> bool:
        """
        Reset usage counters.

        Args:
            program_id: If provided, reset only this program.
                       If None, reset all counters.
        """
        if program_id:
            self.preferences.count.pop(program_id, None)
        else:
            self.preferences.count.clear()
        return self.save()
