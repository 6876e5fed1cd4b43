"""Who may change what on a task.

Schedule fields (start date, status, progress) belong to the task's
assignees. Structural fields (title, description, priority, duration,
assignees) need an admin or manager role, or an assignee. An assignee
without such a role who edits both kinds at once gets only the schedule
part applied: the structural part is dropped and reported back so the UI
can tell the user. The edit dialog relies on that partial acceptance.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace

from tasklane.models import (
    MutationRequest,
    Priority,
    Task,
    TaskStatus,
    parse_assignees,
    parse_duration,
    parse_progress,
)
from tasklane.temporal import try_normalize

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ("start_date", "status", "progress")
STRUCTURAL_FIELDS = ("title", "description", "priority", "duration", "assignees")

FIELD_ALIASES = {"startDate": "start_date", "text": "title"}


class Role(enum.StrEnum):
    ADMIN = "admin"
    MANAGER = "manager"
    TEAM_MEMBER = "team_member"

    @classmethod
    def parse(cls, raw: object) -> Role:
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.TEAM_MEMBER


@dataclass(frozen=True)
class Principal:
    """The acting user and their role in the task's team."""

    user_id: str
    role: Role = Role.TEAM_MEMBER

    @property
    def is_privileged(self) -> bool:
        return self.role in (Role.ADMIN, Role.MANAGER)


class EditOutcome(enum.StrEnum):
    ACCEPTED = "accepted"
    PARTIAL = "partial"
    REJECTED = "rejected"


@dataclass
class EditDecision:
    outcome: EditOutcome
    task: Task
    applied: dict = field(default_factory=dict)
    reverted: list[str] = field(default_factory=list)
    reason: str | None = None

    @property
    def is_partial(self) -> bool:
        return self.outcome == EditOutcome.PARTIAL

    def mutation(self) -> MutationRequest | None:
        """The request to persist, or None when there is nothing to write."""
        if self.outcome == EditOutcome.REJECTED or not self.applied:
            return None
        return MutationRequest(self.task.team_id, self.task.id, dict(self.applied))


def is_assignee(task: Task, principal: Principal) -> bool:
    return principal.user_id in task.assignees


def can_move(task: Task, principal: Principal) -> bool:
    """Start dates are moved by assignees only, whatever their role."""
    return is_assignee(task, principal)


def _coerce(task: Task, name: str, value: object) -> object:
    if name == "start_date":
        parsed = try_normalize(value)
        return task.start_date if parsed is None else parsed
    if name == "status":
        return TaskStatus.parse(value)
    if name == "progress":
        return parse_progress(value)
    if name == "priority":
        return Priority.parse(value)
    if name == "duration":
        return parse_duration(value)
    if name == "assignees":
        return parse_assignees(value)
    return "" if value is None else str(value)


def changed_fields(task: Task, patch: dict) -> dict:
    """Normalized patch entries that differ from *task*'s current values."""
    changes = {}
    for key, value in patch.items():
        name = FIELD_ALIASES.get(key, key)
        if name not in SCHEDULE_FIELDS and name not in STRUCTURAL_FIELDS:
            raise ValueError(f"Field '{key}' cannot be edited")
        coerced = _coerce(task, name, value)
        if coerced != getattr(task, name):
            changes[name] = coerced
    return changes


def review_edit(task: Task, patch: dict, principal: Principal) -> EditDecision:
    """Decide how much of *patch* the principal may apply to *task*."""
    changes = changed_fields(task, patch)
    schedule = {k: v for k, v in changes.items() if k in SCHEDULE_FIELDS}
    structural = {k: v for k, v in changes.items() if k in STRUCTURAL_FIELDS}
    assignee = is_assignee(task, principal)

    if structural and not principal.is_privileged and not assignee:
        logger.debug("Rejected structural edit of %s by %s", task.id, principal.user_id)
        return EditDecision(
            EditOutcome.REJECTED,
            task,
            reason="Only team managers or admins can modify task details other than status and progress.",
        )
    if schedule and not assignee:
        logger.debug("Rejected schedule edit of %s by %s", task.id, principal.user_id)
        return EditDecision(
            EditOutcome.REJECTED,
            task,
            reason="Only task assignees can update status and progress.",
        )
    if structural and not principal.is_privileged:
        logger.debug(
            "Partial edit of %s by %s: reverted %s", task.id, principal.user_id, sorted(structural)
        )
        return EditDecision(
            EditOutcome.PARTIAL,
            replace(task, **schedule),
            applied=schedule,
            reverted=sorted(structural),
            reason="As a task assignee, you can only update status and progress. Other changes have been reverted.",
        )
    return EditDecision(EditOutcome.ACCEPTED, replace(task, **changes), applied=changes)
