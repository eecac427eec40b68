"""Debounced draft autosave, one controller per step.

A controller moves through ``idle -> pending_timer -> in_flight`` and, when
content settles while a save is still outstanding, ``in_flight_queued``. Only
the newest queued snapshot is sent once the outstanding save resolves.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from compliance_workflow.config import settings
from compliance_workflow.workflow.content import ContentSnapshot
from compliance_workflow.workflow.errors import InvalidTransition, PersistenceFailure, WorkflowError

logger = logging.getLogger(__name__)

PersistDraft = Callable[[str, ContentSnapshot], Awaitable[Any]]


class AutosaveState(str, Enum):
    idle = "idle"
    pending_timer = "pending_timer"
    in_flight = "in_flight"
    in_flight_queued = "in_flight_queued"
    inert = "inert"


class DraftAutosaveController:
    def __init__(
        self,
        step_id: str,
        persist: PersistDraft,
        *,
        baseline: ContentSnapshot | None = None,
        editable: bool = True,
        quiet_period: float | None = None,
    ) -> None:
        self.step_id = step_id
        self._persist = persist
        self._baseline = baseline if baseline is not None else ContentSnapshot()
        self._editable = editable
        self._closed = False
        self.quiet_period = settings.AUTOSAVE_QUIET_PERIOD_SECONDS if quiet_period is None else quiet_period

        self._timer: asyncio.Task | None = None
        self._in_flight: asyncio.Task | None = None
        self._queued: ContentSnapshot | None = None
        self.last_error: BaseException | None = None
        self.persist_count = 0

    @property
    def baseline(self) -> ContentSnapshot:
        """Content last acknowledged by the server."""
        return self._baseline

    @property
    def state(self) -> AutosaveState:
        if self._closed or not self._editable:
            return AutosaveState.inert
        if self._in_flight is not None and not self._in_flight.done():
            if self._queued is not None:
                return AutosaveState.in_flight_queued
            return AutosaveState.in_flight
        if self._timer is not None and not self._timer.done():
            return AutosaveState.pending_timer
        return AutosaveState.idle

    @property
    def is_inert(self) -> bool:
        return self.state == AutosaveState.inert

    def observe(self, snapshot: ContentSnapshot) -> None:
        """Feed the latest editor content; restarts the quiet period."""
        if self.is_inert:
            return
        self._cancel_timer()
        self._timer = asyncio.get_running_loop().create_task(self._settle(snapshot))

    def set_editable(self, editable: bool) -> None:
        self._editable = editable
        if not editable:
            self._cancel_timer()
            self._queued = None

    def close(self) -> None:
        """Stop autosaving this step; a pending timer and any queued snapshot are dropped."""
        self._closed = True
        self._cancel_timer()
        self._queued = None

    async def wait_idle(self) -> None:
        """Wait until no timer is pending and no save is outstanding."""
        while True:
            pending = [task for task in (self._timer, self._in_flight) if task is not None and not task.done()]
            if not pending:
                return
            await asyncio.wait(pending)
            for task in pending:
                if task is self._in_flight and not task.cancelled() and task.exception() is not None:
                    raise task.exception()

    async def aclose(self) -> None:
        self.close()
        if self._in_flight is not None and not self._in_flight.done():
            await asyncio.wait([self._in_flight])

    def _cancel_timer(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def _settle(self, snapshot: ContentSnapshot) -> None:
        await asyncio.sleep(self.quiet_period)
        self._timer = None
        self._on_settled(snapshot)

    def _on_settled(self, snapshot: ContentSnapshot) -> None:
        if self.is_inert:
            return
        if self._in_flight is not None and not self._in_flight.done():
            self._queued = snapshot
            return
        if snapshot == self._baseline:
            logger.debug("autosave.skipped_unchanged", extra={"step_id": self.step_id})
            return
        self._in_flight = asyncio.get_running_loop().create_task(self._run(snapshot))

    async def _run(self, snapshot: ContentSnapshot | None) -> None:
        while snapshot is not None:
            await self._save(snapshot)
            snapshot, self._queued = self._queued, None
            if snapshot is not None and (snapshot == self._baseline or self.is_inert):
                snapshot = None

    async def _save(self, snapshot: ContentSnapshot) -> None:
        self.persist_count += 1
        try:
            await self._persist(self.step_id, snapshot)
        except PersistenceFailure as exc:
            self.last_error = exc
            logger.warning(
                "autosave.persist_failed",
                extra={"step_id": self.step_id, "error": str(exc)},
            )
            return
        except InvalidTransition as exc:
            # The step left an editable status (submitted elsewhere, or reviewed).
            self.last_error = exc
            logger.info("autosave.step_not_editable", extra={"step_id": self.step_id, "error": str(exc)})
            self.set_editable(False)
            return
        except WorkflowError as exc:
            self.last_error = exc
            logger.warning("autosave.rejected", extra={"step_id": self.step_id, "error": str(exc)})
            self.set_editable(False)
            return
        except Exception as exc:
            # Treated like a transport failure: baseline kept, queued content still goes out.
            self.last_error = exc
            logger.exception("autosave.persist_crashed", extra={"step_id": self.step_id})
            return
        self.last_error = None
        self._baseline = snapshot
        logger.debug("autosave.persisted", extra={"step_id": self.step_id})


class DraftAutosaveRegistry:
    """Per-step controllers for one editing session."""

    def __init__(self, persist: PersistDraft, *, quiet_period: float | None = None) -> None:
        self._persist = persist
        self._quiet_period = quiet_period
        self._controllers: dict[str, DraftAutosaveController] = {}

    def open(self, step_id: str, *, baseline: ContentSnapshot, editable: bool) -> DraftAutosaveController:
        controller = self._controllers.get(step_id)
        if controller is None or controller.is_inert:
            controller = DraftAutosaveController(
                step_id,
                self._persist,
                baseline=baseline,
                editable=editable,
                quiet_period=self._quiet_period,
            )
            self._controllers[step_id] = controller
        return controller

    def get(self, step_id: str) -> DraftAutosaveController | None:
        return self._controllers.get(step_id)

    def close(self, step_id: str) -> None:
        controller = self._controllers.pop(step_id, None)
        if controller is not None:
            controller.close()

    async def aclose(self) -> None:
        controllers = list(self._controllers.values())
        self._controllers.clear()
        for controller in controllers:
            await controller.aclose()
