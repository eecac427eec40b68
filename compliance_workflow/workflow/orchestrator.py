from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Optional, Protocol, Sequence

from compliance_workflow.workflow.errors import NotFound
from compliance_workflow.workflow.models import WorkflowStep
from compliance_workflow.workflow.state_machine import is_actionable, is_terminal

logger = logging.getLogger(__name__)

FULL_PROGRESS = 100

ProgressObserver = Callable[["ProgressChange"], None]


class StepSource(Protocol):
    def list_steps(self, deliverable_id: str) -> Optional[Sequence[WorkflowStep]]:
        """Ordered steps of a deliverable, or ``None`` when the deliverable is unknown."""


@dataclass(frozen=True)
class ProgressChange:
    deliverable_id: str
    step_id: str | None
    previous: int
    current: int

    @property
    def upload_unlocked(self) -> bool:
        return is_upload_unlocked(self.current)


def load_steps(source: StepSource, deliverable_id: str) -> list[WorkflowStep]:
    steps = source.list_steps(deliverable_id)
    if not steps:
        raise NotFound(f"No compliance workflow configured for deliverable {deliverable_id}")
    return sorted(steps, key=lambda step: step.position)


def compute_progress(steps: Iterable[WorkflowStep]) -> int:
    steps = list(steps)
    if not steps:
        return 0
    done = sum(1 for step in steps if is_terminal(step.status))
    ratio = Decimal(100 * done) / Decimal(len(steps))
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def select_actionable_step(steps: Iterable[WorkflowStep]) -> WorkflowStep | None:
    for step in steps:
        if is_actionable(step.status):
            return step
    return None


def is_upload_unlocked(progress: int) -> bool:
    return progress == FULL_PROGRESS


class WorkflowOrchestrator:
    """Holds the ordered steps of one deliverable and keeps their progress current.

    Observers are called after every step status change with the progress
    before and after the change, so callers can react when upload unlocks.
    """

    def __init__(self, deliverable_id: str, steps: Sequence[WorkflowStep]) -> None:
        self.deliverable_id = deliverable_id
        self._steps: list[WorkflowStep] = sorted(steps, key=lambda step: step.position)
        self._progress = compute_progress(self._steps)
        self._observers: list[ProgressObserver] = []

    @classmethod
    def load(cls, source: StepSource, deliverable_id: str) -> "WorkflowOrchestrator":
        return cls(deliverable_id, load_steps(source, deliverable_id))

    @property
    def steps(self) -> list[WorkflowStep]:
        return list(self._steps)

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def upload_unlocked(self) -> bool:
        return is_upload_unlocked(self._progress)

    @property
    def actionable_step(self) -> WorkflowStep | None:
        return select_actionable_step(self._steps)

    def subscribe(self, observer: ProgressObserver) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def get_step(self, step_id: str) -> WorkflowStep:
        for step in self._steps:
            if step.id == step_id:
                return step
        raise NotFound(f"Compliance step {step_id} not found")

    def apply(self, updated: WorkflowStep) -> int:
        """Replace a step with its updated version and recompute progress."""
        for index, step in enumerate(self._steps):
            if step.id == updated.id:
                previous_step = step
                self._steps[index] = updated
                break
        else:
            raise NotFound(f"Compliance step {updated.id} not found")

        previous = self._progress
        self._progress = compute_progress(self._steps)
        if previous_step.status != updated.status:
            self._notify(ProgressChange(
                deliverable_id=self.deliverable_id,
                step_id=updated.id,
                previous=previous,
                current=self._progress,
            ))
        return self._progress

    def _notify(self, change: ProgressChange) -> None:
        logger.debug(
            "workflow.progress_recomputed",
            extra={
                "deliverable_id": change.deliverable_id,
                "step_id": change.step_id,
                "previous": change.previous,
                "current": change.current,
            },
        )
        for observer in list(self._observers):
            observer(change)
