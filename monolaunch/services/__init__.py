# monolaunch Services Package
"""
Backend services for the monolaunch core.

Services handle the instance lock, usage persistence, the program index,
and the orchestration that ties them together.
"""

from .instance_lock import (
    InstanceCoordinator,
    InstanceLockError,
    LockEvent,
    LockOutcome,
    LockState,
)
from .launcher import LauncherContext, LauncherService, LogPresenter, Presenter
from .preferences import PreferenceStore, Preferences
from .programs import ProgramRecord, build_index

__all__ = [
    "InstanceCoordinator",
    "InstanceLockError",
    "LauncherContext",
    "LauncherService",
    "LockEvent",
    "LockOutcome",
    "LockState",
    "LogPresenter",
    "PreferenceStore",
    "Preferences",
    "Presenter",
    "ProgramRecord",
    "build_index",
]
