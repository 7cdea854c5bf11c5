# monolaunch Utilities Package
"""
Shared utility functions and helpers for the monolaunch core.
"""

from .helpers import atomic_write_text, launch_program, load_settings, resolve_path

__all__ = ["atomic_write_text", "launch_program", "load_settings", "resolve_path"]
