"""Drag-to-reschedule interaction state machine."""

from __future__ import annotations

import enum
import logging
import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol

from tasklane.layout import layout
from tasklane.models import LayoutEntry, MutationRequest, Task, ViewWindow
from tasklane.permissions import Principal, can_move

logger = logging.getLogger(__name__)


class DragPhase(enum.StrEnum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class DragState:
    task_id: str
    pointer_origin: float
    pointer_offset: float
    origin_day_offset: int
    current_day_offset: int
    proposed_date: datetime


@dataclass(frozen=True)
class DragProposal:
    task_id: str
    proposed_date: datetime
    original_date: datetime
    request: MutationRequest

    @property
    def changed(self) -> bool:
        return self.proposed_date != self.original_date


class CommitSink(Protocol):
    """Anything that can persist a mutation and report success."""

    def commit(self, request: MutationRequest) -> bool: ...


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up, unlike the built-in ``round``."""
    return math.floor(value + 0.5)


class DragController:
    """Turns pointer movement into a proposed new start date for one task.

    ``IDLE -> DRAGGING -> COMMITTING | CANCELLED``. After a commit the caller
    reports back through :meth:`settle` with the confirmed or the original
    tasks; the controller never keeps an authoritative copy of its own.
    """

    def __init__(self, entries: list[LayoutEntry], window: ViewWindow, day_width_px: float):
        if day_width_px <= 0:
            raise ValueError("day_width_px must be positive")
        self.entries = list(entries)
        self.window = window
        self.day_width_px = day_width_px
        self.phase = DragPhase.IDLE
        self.state: DragState | None = None

    def _find(self, task_id: str) -> LayoutEntry | None:
        return next((e for e in self.entries if e.task.id == task_id), None)

    def _proposed(self, task: Task, day_offset: int) -> datetime:
        # Keep the task's time of day so an unmoved drag proposes its own start.
        day = self.window.start + timedelta(days=day_offset)
        return datetime.combine(day.date(), task.start_date.time())

    def begin_drag(self, task_id: str, pointer_x: float, principal: Principal) -> bool:
        """Start dragging; returns False (and changes nothing) when not allowed."""
        if self.phase not in (DragPhase.IDLE, DragPhase.CANCELLED):
            logger.debug("Ignoring drag of %s while %s", task_id, self.phase)
            return False
        entry = self._find(task_id)
        if entry is None:
            logger.debug("Ignoring drag of unknown task %s", task_id)
            return False
        if not can_move(entry.task, principal):
            logger.debug("User %s may not move task %s", principal.user_id, task_id)
            return False

        self.state = DragState(
            task_id=task_id,
            pointer_origin=pointer_x,
            pointer_offset=0.0,
            origin_day_offset=entry.day_offset,
            current_day_offset=entry.day_offset,
            proposed_date=entry.task.start_date,
        )
        self.phase = DragPhase.DRAGGING
        return True

    def update_drag(self, pointer_x: float) -> DragState | None:
        if self.phase != DragPhase.DRAGGING or self.state is None:
            return None
        delta = pointer_x - self.state.pointer_origin
        day_offset = self.state.origin_day_offset + round_half_up(delta / self.day_width_px)
        task = self._find(self.state.task_id).task
        self.state = replace(
            self.state,
            pointer_offset=delta,
            current_day_offset=day_offset,
            proposed_date=self._proposed(task, day_offset),
        )
        return self.state

    def end_drag(self) -> DragProposal | None:
        """Finish the drag and propose the move; the layout updates optimistically."""
        if self.phase != DragPhase.DRAGGING or self.state is None:
            return None
        task = self._find(self.state.task_id).task
        proposed = self.state.proposed_date
        proposal = DragProposal(
            task_id=task.id,
            proposed_date=proposed,
            original_date=task.start_date,
            request=MutationRequest(task.team_id, task.id, {"start_date": proposed}),
        )
        moved = replace(task, start_date=proposed)
        self.entries = layout([moved if e.task.id == task.id else e.task for e in self.entries], self.window)
        self.phase = DragPhase.COMMITTING
        self.state = None
        logger.debug("Proposed %s -> %s", task.id, proposed.isoformat())
        return proposal

    def cancel_drag(self) -> None:
        """Abandon an active drag. Safe to call in any phase."""
        if self.phase != DragPhase.DRAGGING:
            return
        self.phase = DragPhase.CANCELLED
        self.state = None

    def settle(self, tasks: list[Task]) -> list[LayoutEntry]:
        """Lay out *tasks* (confirmed on success, original on failure) and go idle."""
        self.entries = layout(tasks, self.window)
        self.phase = DragPhase.IDLE
        self.state = None
        return self.entries


def reschedule(
    controller: DragController,
    sink: CommitSink,
    original: list[Task],
    proposal: DragProposal,
) -> bool:
    """Commit *proposal* through *sink*, then settle the controller either way."""
    ok = sink.commit(proposal.request)
    if ok:
        confirmed = [replace(t, start_date=proposal.proposed_date) if t.id == proposal.task_id else t for t in original]
        controller.settle(confirmed)
        logger.info("Moved %s to %s", proposal.task_id, proposal.proposed_date.date().isoformat())
    else:
        controller.settle(original)
        logger.warning("Commit of %s failed; layout rolled back", proposal.task_id)
    return ok
