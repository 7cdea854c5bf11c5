"""
Instance Lock Service - Keep a single launcher running per user session.

A well-known lock file is the only shared state between launcher processes.
Its contents are one token per line:

  (empty)   an instance owns the lock and is idle
  open      a new process asks whether the owner is still alive
  cancel    the owner answers: it is alive, the new process should yield

Startup protocol:
  - No lock file: write the idle token, own the lock, watch it.
  - Lock file present: write "open" and wait up to `timeout` seconds.
      * "cancel" shows up first: another instance is alive, yield.
      * the file disappears: the owner is exiting, take the lock.
      * the timer fires first: the lock is stale, take it over.

The owner watches its lock file. When it sees "open" it writes "cancel" and
queues a RUN_AGAIN event so the running launcher can surface itself.

An owner that stalls for longer than `timeout` is indistinguishable from a
dead one and will be superseded. The default of 100ms keeps a crashed owner
from blocking new launches; raise it in settings if that trade-off is wrong.
"""

import asyncio
import atexit
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger

from ..utils.helpers import atomic_write_text, resolve_path


DEFAULT_LOCK_PATH = Path.home() / ".launcher-lock"
DEFAULT_TIMEOUT = 0.1
DEFAULT_POLL_INTERVAL = 0.01

IDLE_TOKEN = ""
OPEN_TOKEN = "open"
CANCEL_TOKEN = "cancel"


class InstanceLockError(Exception):
    """The lock file can't be written, so no instance identity can be established."""


class LockState(Enum):
    NO_LOCK = "no_lock"
    HELD = "held"
    NEGOTIATING = "negotiating"


class LockOutcome(Enum):
    ACQUIRED = "acquired"
    TOOK_OVER = "took_over"
    ALREADY_RUNNING = "already_running"


class LockEvent(Enum):
    RUN_AGAIN = "run_again"


class LockFileWatcher:
    """
    Poll a file on the event loop and report changes.

    A change is any difference in (inode, mtime, content), so writes from
    other processes are seen even when they replace the file with identical
    text. The callback receives the new content, or None if the file is gone.
    """

    def __init__(
        self,
        path: Path,
        callback: Callable[[Optional[str]], None],
        interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.path = Path(path)
        self.interval = interval
        self._callback = callback
        self._last = None
        self._task: Optional[asyncio.Task] = None

    def _snapshot(self) -> Optional[tuple[int, int, str]]:
        try:
            with open(self.path, encoding="utf-8", errors="replace") as f:
                stat = os.fstat(f.fileno())
                content = f.read()
        except OSError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, content)

    def start(self) -> None:
        self._last = self._snapshot()
        self._task = asyncio.get_running_loop().create_task(self._poll())

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            snapshot = self._snapshot()
            if snapshot == self._last:
                continue
            self._last = snapshot
            try:
                self._callback(None if snapshot is None else snapshot[2])
            except Exception:
                logger.exception(f"Lock watcher callback failed for {self.path}")


class InstanceCoordinator:
    """
    Owns the lock file for one launcher process.

    Attributes:
        state: Current LockState
        events: Queue of LockEvent delivered while this instance holds the lock

    Methods:
        acquire(): Negotiate for the lock, returns a LockOutcome
        release(): Give up the lock and delete the file
    """

    def __init__(
        self,
        lock_path: Path | str = DEFAULT_LOCK_PATH,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.lock_path = Path(lock_path)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.state = LockState.NO_LOCK
        self.events: asyncio.Queue[LockEvent] = asyncio.Queue()
        self._watcher: Optional[LockFileWatcher] = None

    @classmethod
    def from_settings(cls, settings: dict[str, Any]) -> "InstanceCoordinator":
        instance = settings["instance"]
        return cls(
            resolve_path(settings["paths"]["lock_file"]),
            timeout=instance["negotiation_timeout_ms"] / 1000,
            poll_interval=instance["poll_interval_ms"] / 1000,
        )

    async def acquire(self) -> LockOutcome:
        """
        Become the running instance, or find out that one already exists.

        Returns:
            ACQUIRED if there was no owner, TOOK_OVER if a stale lock was
            replaced, ALREADY_RUNNING if a live owner answered.

        Raises:
            InstanceLockError: If the lock file can't be written
        """
        if self.state is LockState.HELD:
            return LockOutcome.ACQUIRED

        if not self.lock_path.exists():
            logger.info("No lock file, starting new instance")
            self._take()
            return LockOutcome.ACQUIRED

        logger.info(f"Lock file {self.lock_path} exists, checking if in use")
        outcome = await self._negotiate()

        if outcome is LockOutcome.ALREADY_RUNNING:
            logger.info("Launcher is already running, cancelling this instance")
            return outcome

        if outcome is LockOutcome.TOOK_OVER:
            logger.info(f"No answer within {self.timeout * 1000:.0f}ms, taking over stale lock")
        else:
            logger.info("Lock file disappeared during negotiation, starting new instance")
        self._take()
        return outcome

    async def _negotiate(self) -> LockOutcome:
        self.state = LockState.NEGOTIATING
        loop = asyncio.get_running_loop()
        decision: asyncio.Future = loop.create_future()

        def settle(outcome: LockOutcome) -> None:
            # First caller wins; the timer and the watcher race for this
            if not decision.done():
                decision.set_result(outcome)

        def on_change(content: Optional[str]) -> None:
            if content is None:
                settle(LockOutcome.ACQUIRED)
            elif content.strip() == CANCEL_TOKEN:
                settle(LockOutcome.ALREADY_RUNNING)

        # Watch before writing so a fast reply can't slip past the first snapshot
        watcher = LockFileWatcher(self.lock_path, on_change, self.poll_interval)
        watcher.start()
        timer = None
        try:
            self._write_token(OPEN_TOKEN)
            timer = loop.call_later(self.timeout, settle, LockOutcome.TOOK_OVER)
            return await decision
        finally:
            if timer is not None:
                timer.cancel()
            watcher.stop()
            self.state = LockState.NO_LOCK

    def _take(self) -> None:
        # Baseline before the idle write, so an "open" landing right after it is answered
        watcher = LockFileWatcher(self.lock_path, self._on_lock_changed, self.poll_interval)
        watcher.start()
        try:
            self._write_token(IDLE_TOKEN)
        except InstanceLockError:
            watcher.stop()
            raise

        self._watcher = watcher
        self.state = LockState.HELD
        atexit.register(self.release)
        logger.debug(f"Holding lock {self.lock_path}")

    def _write_token(self, token: str) -> None:
        try:
            atomic_write_text(self.lock_path, token + "\n")
        except OSError as e:
            self.state = LockState.NO_LOCK
            raise InstanceLockError(f"Cannot write lock file {self.lock_path}: {e}") from e

    def _on_lock_changed(self, content: Optional[str]) -> None:
        if content is None:
            logger.warning(f"Lock file {self.lock_path} was removed while held")
            return

        if content.strip() != OPEN_TOKEN:
            return

        logger.info("Another launcher instance is starting, telling it to cancel")
        try:
            atomic_write_text(self.lock_path, CANCEL_TOKEN + "\n")
        except OSError:
            logger.exception(f"Failed to answer on lock file {self.lock_path}")
            return

        self.events.put_nowait(LockEvent.RUN_AGAIN)

    def release(self) -> None:
        """
        Stop watching and delete the lock file.

        Safe to call more than once. Deletion errors are logged and ignored
        so they never block shutdown.
        """
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        atexit.unregister(self.release)

        if self.state is not LockState.HELD:
            return
        self.state = LockState.NO_LOCK

        logger.debug(f"Deleting lock file {self.lock_path}")
        try:
            self.lock_path.unlink()
        except OSError as e:
            logger.debug(f"Could not delete lock file {self.lock_path}: {e}")
