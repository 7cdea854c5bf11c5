"""
Program Indexer - Scan application descriptor directories into a ranked list.

Each directory is read non-recursively. Every entry is parsed as simple
Key=Value lines; only Name, Comment, GenericName, Exec and Icon are kept.
Entries without an Exec line are templates or abstract descriptors and
are dropped.

Ranking is by run count, most used first. Programs with equal counts keep
the order they were scanned in.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from .preferences import Preferences


RECOGNIZED_KEYS = ("Name", "Comment", "GenericName", "Exec", "Icon")

# Field codes like %f, %U, %i are placeholders filled in by the caller
PLACEHOLDER_PATTERN = re.compile(r"\s%\w")

NAME_WEIGHT = 1000
COMMENT_WEIGHT = 1
GENERIC_NAME_WEIGHT = 1
MAX_KEYWORDS = 20


@dataclass
class ProgramRecord:
    """A launchable program parsed from one descriptor file."""
    id: str
    exec: str
    name: Optional[str] = None
    comment: Optional[str] = None
    generic_name: Optional[str] = None
    icon: Optional[str] = None
    keywords: list[tuple[str, int]] = field(default_factory=list)
    run_count: int = 0


def parse_descriptor(text: str) -> dict[str, str]:
    """
    Parse Key=Value lines, keeping the first non-empty value per recognized key.

    Lines without '=' (blank lines, [Section] headers, comments) are ignored.
    """
    fields: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if not sep:
            continue
        key = key.strip()
        if key in RECOGNIZED_KEYS and not fields.get(key):
            fields[key] = value.strip()
    return fields


def normalize_exec(exec_line: str) -> str:
    """Remove placeholder parameters: "app.sh %f %U" -> "app.sh"."""
    return PLACEHOLDER_PATTERN.sub("", exec_line).strip()


def extract_keywords(
    name: Optional[str],
    comment: Optional[str],
    generic_name: Optional[str],
) -> list[tuple[str, int]]:
    """
    Build weighted search tokens from the human-readable fields.

    Name tokens weigh 1000, Comment and GenericName tokens weigh 1.
    The list is capped at MAX_KEYWORDS entries.
    """
    keywords = [(token, NAME_WEIGHT) for token in (name or "").lower().split()]
    keywords += [(token, COMMENT_WEIGHT) for token in (comment or "").lower().split()]
    keywords += [(token, GENERIC_NAME_WEIGHT) for token in (generic_name or "").lower().split()]
    return keywords[:MAX_KEYWORDS]


def load_program(path: Path, preferences: Preferences) -> Optional[ProgramRecord]:
    """
    Read one descriptor file into a ProgramRecord.

    Returns:
        The record, or None if the descriptor has no usable Exec line

    Raises:
        OSError, UnicodeDecodeError: If the file can't be read
    """
    fields = parse_descriptor(path.read_text(encoding="utf-8"))
    program_id = str(path)

    exec_line = normalize_exec(fields.get("Exec", ""))
    if not exec_line:
        logger.debug(f"Skipping {program_id}: no Exec")
        return None

    name = fields.get("Name")
    comment = fields.get("Comment")
    generic_name = fields.get("GenericName")

    return ProgramRecord(
        id=program_id,
        exec=exec_line,
        name=name,
        comment=comment,
        generic_name=generic_name,
        icon=fields.get("Icon"),
        keywords=extract_keywords(name, comment, generic_name),
        run_count=preferences.count.get(program_id, 0),
    )


def _scan_directory(directory: Path, preferences: Preferences) -> list[ProgramRecord]:
    """Load every descriptor directly inside a directory, skipping bad files."""
    try:
        filenames = sorted(os.listdir(directory))
    except OSError as e:
        logger.warning(f"Skipping application directory {directory}: {e}")
        return []

    programs = []
    for filename in filenames:
        path = directory / filename
        try:
            if not path.is_file():
                continue
            program = load_program(path, preferences)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable descriptor {path}: {e}")
            continue
        if program is not None:
            programs.append(program)

    return programs


def build_index(
    directories: Iterable[Path | str],
    preferences: Preferences,
) -> list[ProgramRecord]:
    """
    Scan descriptor directories and rank the programs found.

    Args:
        directories: Directories to scan, in order. Duplicates are scanned once.
        preferences: Source of run counts

    Returns:
        Program records sorted by run_count descending. Ties keep scan order.
    """
    programs: list[ProgramRecord] = []
    seen: set[str] = set()

    for directory in directories:
        directory = Path(directory)
        if str(directory) in seen:
            continue
        seen.add(str(directory))
        programs.extend(_scan_directory(directory, preferences))

    # list.sort is stable, so equal counts keep scan order
    programs.sort(key=lambda p: p.run_count, reverse=True)
    logger.debug(f"Indexed {len(programs)} programs from {len(seen)} directories")
    return programs
