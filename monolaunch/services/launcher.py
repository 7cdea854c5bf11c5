"""
Launcher Service - Ties the lock, the preferences and the program index together.

The presentation layer (whatever draws the list) implements the Presenter
protocol and calls back into the service:

  run_program(program_id)  user picked a program
  hide()                   user dismissed the launcher

The service calls Presenter.show() on startup and whenever a second launch
attempt is detected, so the running instance comes to the front.
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from ..utils.helpers import launch_program, resolve_path
from .instance_lock import InstanceCoordinator, LockEvent, LockOutcome
from .preferences import PreferenceStore
from .programs import ProgramRecord, build_index


class Presenter(Protocol):
    def show(self, programs: list[ProgramRecord]) -> None: ...

    def hide(self) -> None: ...


class LogPresenter:
    """Headless presenter that only logs what a UI would display."""

    def show(self, programs: list[ProgramRecord]) -> None:
        logger.info(f"Showing launcher with {len(programs)} programs")

    def hide(self) -> None:
        logger.info("Hiding launcher")


@dataclass
class LauncherContext:
    """Everything one launcher instance owns."""
    settings: dict[str, Any]
    coordinator: InstanceCoordinator
    store: PreferenceStore
    directories: list[Path]
    programs: list[ProgramRecord] = field(default_factory=list)
    service_mode: bool = False
    visible: bool = False


class LauncherService:
    """
    Orchestrates a single launcher instance.

    Methods:
        start(): Acquire the instance lock, load data, show the launcher
        run_program(program_id): Spawn a program and record the launch
        show() / hide(): Surface or dismiss the presenter
        refresh() / reindex(): Rebuild the program index (reindex off the loop)
        wait_closed(): Wait until the launcher is done
        stop(): Stop event handling and release the lock
    """

    def __init__(
        self,
        context: LauncherContext,
        presenter: Optional[Presenter] = None,
        spawn: Callable[[str], Any] = launch_program,
    ):
        self.context = context
        self.presenter = presenter or LogPresenter()
        self._spawn = spawn
        self._closed = asyncio.Event()
        self._events_task: Optional[asyncio.Task] = None

    @classmethod
    def from_settings(
        cls,
        settings: dict[str, Any],
        presenter: Optional[Presenter] = None,
        service_mode: bool = False,
    ) -> "LauncherService":
        context = LauncherContext(
            settings=settings,
            coordinator=InstanceCoordinator.from_settings(settings),
            store=PreferenceStore(resolve_path(settings["paths"]["preferences"])),
            directories=[resolve_path(d) for d in settings["index"]["directories"]],
            service_mode=service_mode or settings["launcher"]["service"],
        )
        return cls(context, presenter)

    @property
    def programs(self) -> list[ProgramRecord]:
        return self.context.programs

    async def start(self) -> LockOutcome:
        """
        Acquire the instance lock and bring the launcher up.

        Returns:
            The lock outcome. On ALREADY_RUNNING nothing else happens;
            the running instance surfaces itself instead.

        Raises:
            InstanceLockError: If the lock file can't be written
        """
        outcome = await self.context.coordinator.acquire()
        if outcome is LockOutcome.ALREADY_RUNNING:
            return outcome

        self.context.store.load()
        await self.reindex()
        self._events_task = asyncio.get_running_loop().create_task(self._handle_events())

        if self.context.service_mode:
            logger.info("Service running")
        else:
            self.show()
            logger.info("Successfully launched")
        return outcome

    async def _handle_events(self) -> None:
        while True:
            event = await self.context.coordinator.events.get()
            if event is LockEvent.RUN_AGAIN:
                logger.info("Second launch detected, showing launcher")
                await self.reindex()
                self.show()

    def refresh(self) -> list[ProgramRecord]:
        """Rebuild the ranked program list from disk and current counts."""
        self.context.programs = build_index(
            self.context.directories, self.context.store.preferences
        )
        return self.context.programs

    async def reindex(self) -> list[ProgramRecord]:
        """
        Rebuild the program list on a worker thread.

        Scanning large application directories would otherwise stall the
        event loop, and with it the lock watcher that must answer new
        launches within the negotiation timeout.
        """
        loop = asyncio.get_running_loop()
        self.context.programs = await loop.run_in_executor(
            None, build_index, self.context.directories, self.context.store.preferences
        )
        return self.context.programs

    def find_program(self, program_id: str) -> Optional[ProgramRecord]:
        for program in self.context.programs:
            if program.id == program_id:
                return program
        return None

    def show(self) -> None:
        self.context.visible = True
        self.presenter.show(self.context.programs)

    def hide(self) -> None:
        """
        Dismiss the launcher.

        In service mode the process keeps running, hidden, until the next
        launch attempt. Otherwise hiding ends the launcher.
        """
        self.context.visible = False
        self.presenter.hide()
        if not self.context.service_mode:
            self._closed.set()

    def run_program(self, program_id: str) -> Optional[ProgramRecord]:
        """
        Launch a program, record the launch, and hide the launcher.

        Args:
            program_id: Descriptor path of the program to run

        Returns:
            The launched program, or None if the id is unknown or the
            spawn failed
        """
        program = self.find_program(program_id)
        if program is None:
            logger.warning(f"Unknown program requested: {program_id}")
            return None

        logger.info(f"Launching {program.exec}")
        try:
            self._spawn(program.exec)
        except (OSError, ValueError):
            # ValueError: Popen rejects commands with embedded NUL bytes
            logger.exception(f"Failed to launch {program.exec}")
            return None

        program.run_count = self.context.store.increment(program.id)
        self.hide()
        return program

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def close(self) -> None:
        self._closed.set()

    async def stop(self) -> None:
        """Stop handling lock events and release the instance lock."""
        if self._events_task is not None:
            self._events_task.cancel()
            try:
                await self._events_task
            except asyncio.CancelledError:
                pass
            self._events_task = None
        self.context.coordinator.release()
