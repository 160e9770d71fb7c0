"""Hierarchical goal tracking with dependency gating and retry-driven adaptation.

The tracker holds one optional main goal and a flat collection of subgoals.
Main-goal progress is derived from the subgoals whenever any of them changes.
Every operation tolerates unknown ids and reports them through its return
value instead of raising.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable
from uuid import uuid4

from mc_agent.config import settings


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GoalStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    NEEDS_REVISION = "needs_revision"

    @property
    def is_terminal(self) -> bool:
        return self in (GoalStatus.COMPLETED, GoalStatus.FAILED)


@dataclass(slots=True)
class GoalAttempt:
    timestamp: datetime
    reason: str


@dataclass(slots=True)
class Goal:
    id: str
    description: str
    status: GoalStatus = GoalStatus.PENDING
    progress: int = 0
    prerequisites: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    attempts: int = 0
    last_attempt: GoalAttempt | None = None
    context: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None


@dataclass(slots=True)
class StrategyAdaptation:
    goal_id: str
    timestamp: datetime
    previous_attempts: int
    reason: str


@dataclass(slots=True)
class MainGoalSummary:
    description: str
    progress: int
    status: str
    time_running_seconds: float


@dataclass(slots=True)
class SubGoalSummary:
    id: str
    description: str
    progress: int
    status: str
    attempts: int


@dataclass(slots=True)
class GoalSummary:
    main_goal: MainGoalSummary | None
    active_sub_goals: list[SubGoalSummary]
    completed_count: int
    failed_count: int
    adaptation_count: int


def clamp_progress(value: float) -> int:
    return int(max(0, min(100, value)))


class GoalTracker:
    """Main goal plus flat subgoal collection with prerequisite/dependency gating."""

    def __init__(self, *, max_attempts: int | None = None, logger: logging.Logger | None = None) -> None:
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_goal_attempts
        self._logger = logger or logging.getLogger("mc_agent.goals")

        self.main_goal: Goal | None = None
        self.sub_goals: list[Goal] = []
        self.completed_goals: list[Goal] = []
        self.failed_goals: list[Goal] = []
        self.strategy_adaptations: list[StrategyAdaptation] = []
        # Subgoals retired under the current main goal; reset with each new main goal.
        self._retired_ids: set[str] = set()

    def set_main_goal(self, description: str, context: dict[str, Any] | None = None) -> str:
        self.main_goal = Goal(
            id=f"goal_{uuid4().hex}",
            description=description,
            status=GoalStatus.ACTIVE,
            context=dict(context or {}),
        )
        self._retired_ids = set()
        self._logger.info("main_goal_set", extra={"goal_id": self.main_goal.id, "description": description})
        return self.main_goal.id

    def add_sub_goal(
        self,
        description: str,
        prerequisites: Iterable[str] = (),
        dependencies: Iterable[str] = (),
    ) -> str:
        goal = Goal(
            id=f"subgoal_{uuid4().hex}",
            description=description,
            prerequisites=list(prerequisites),
            dependencies=list(dependencies),
        )
        self.sub_goals.append(goal)
        self._logger.info("sub_goal_added", extra={"goal_id": goal.id, "description": description})
        self._update_main_goal_progress()
        return goal.id

    def find_goal(self, goal_id: str) -> Goal | None:
        if self.main_goal is not None and self.main_goal.id == goal_id:
            return self.main_goal
        for goal in self.sub_goals:
            if goal.id == goal_id:
                return goal
        return None

    def update_goal_progress(self, goal_id: str, progress: float, context: dict[str, Any] | None = None) -> bool:
        goal = self.find_goal(goal_id)
        if goal is None:
            return False

        goal.progress = clamp_progress(progress)
        goal.updated_at = _now()
        if context:
            goal.context.update(context)
        if goal is not self.main_goal:
            self._update_main_goal_progress()
        return True

    def start_goal(self, goal_id: str) -> bool:
        goal = self.find_goal(goal_id)
        if goal is None or goal.status.is_terminal:
            return False
        if goal is not self.main_goal and not self.can_start_goal(goal_id):
            return False

        goal.status = GoalStatus.ACTIVE
        goal.updated_at = _now()
        return True

    def record_failed_attempt(self, goal_id: str, reason: str) -> bool:
        goal = self.find_goal(goal_id)
        if goal is None:
            return False

        goal.attempts += 1
        goal.last_attempt = GoalAttempt(timestamp=_now(), reason=reason)
        goal.updated_at = goal.last_attempt.timestamp
        self._logger.info(
            "goal_attempt_failed",
            extra={"goal_id": goal.id, "attempt": goal.attempts, "reason": reason},
        )
        if goal.attempts > self.max_attempts:
            self._adapt_strategy(goal)
        return True

    def _adapt_strategy(self, goal: Goal) -> None:
        reason = goal.last_attempt.reason if goal.last_attempt else "Too many failures"
        self.strategy_adaptations.append(
            StrategyAdaptation(
                goal_id=goal.id,
                timestamp=_now(),
                previous_attempts=goal.attempts,
                reason=reason,
            )
        )
        if not goal.status.is_terminal:
            goal.status = GoalStatus.NEEDS_REVISION
        self._logger.warning(
            "goal_needs_revision",
            extra={"goal_id": goal.id, "attempts": goal.attempts, "reason": reason},
        )
        if goal is not self.main_goal:
            self._update_main_goal_progress()

    def complete_goal(self, goal_id: str) -> bool:
        goal = self.find_goal(goal_id)
        if goal is None or goal.status.is_terminal:
            return False

        goal.status = GoalStatus.COMPLETED
        goal.completed_at = _now()
        goal.updated_at = goal.completed_at
        self._retire(goal, self.completed_goals)
        self._logger.info("goal_completed", extra={"goal_id": goal.id})
        return True

    def fail_goal(self, goal_id: str, reason: str | None = None) -> bool:
        goal = self.find_goal(goal_id)
        if goal is None or goal.status.is_terminal:
            return False

        goal.status = GoalStatus.FAILED
        goal.failed_at = _now()
        goal.updated_at = goal.failed_at
        goal.failure_reason = reason
        self._retire(goal, self.failed_goals)
        self._logger.info("goal_failed", extra={"goal_id": goal.id, "reason": reason})
        return True

    def _retire(self, goal: Goal, history: list[Goal]) -> None:
        history.append(
            replace(
                goal,
                prerequisites=list(goal.prerequisites),
                dependencies=list(goal.dependencies),
                context=dict(goal.context),
            )
        )
        if goal is not self.main_goal:
            self._retired_ids.add(goal.id)
            self.sub_goals = [candidate for candidate in self.sub_goals if candidate.id != goal.id]
        self._update_main_goal_progress()

    def _update_main_goal_progress(self) -> None:
        if self.main_goal is None or not self._tracked_sub_goals():
            return

        tracked = self._tracked_sub_goals()
        active = [goal for goal in tracked if not goal.status.is_terminal]
        if not active:
            # Nothing left to drive progress; this also fires when every subgoal failed.
            self.main_goal.progress = 100
            return

        total = sum(100 if goal.status is GoalStatus.COMPLETED else goal.progress for goal in tracked)
        self.main_goal.progress = clamp_progress(math.floor(total / len(tracked)))

    def _retired_sub_goals(self) -> list[Goal]:
        return [goal for goal in [*self.completed_goals, *self.failed_goals] if goal.id in self._retired_ids]

    def _tracked_sub_goals(self) -> list[Goal]:
        return [*self.sub_goals, *self._retired_sub_goals()]

    def _resolve_any(self, goal_id: str) -> Goal | None:
        goal = self.find_goal(goal_id)
        if goal is not None:
            return goal
        for retired in [*self.completed_goals, *self.failed_goals]:
            if retired.id == goal_id:
                return retired
        return None

    def get_blocking_ids(self, goal_id: str) -> list[str]:
        """Return prerequisite and dependency ids that do not resolve to a completed goal."""
        goal = self.find_goal(goal_id)
        if goal is None:
            return []
        blocking = []
        for required in [*goal.prerequisites, *goal.dependencies]:
            resolved = self._resolve_any(required)
            if resolved is None or resolved.status is not GoalStatus.COMPLETED:
                blocking.append(required)
        return blocking

    def get_pending_prerequisites(self, goal_id: str) -> list[str]:
        goal = self.find_goal(goal_id)
        if goal is None:
            return []
        blocking = set(self.get_blocking_ids(goal_id))
        return [required for required in goal.prerequisites if required in blocking]

    def can_start_goal(self, goal_id: str) -> bool:
        if self.find_goal(goal_id) is None:
            return False
        return not self.get_blocking_ids(goal_id)

    def get_active_sub_goals(self) -> list[Goal]:
        return [goal for goal in self.sub_goals if goal.status in (GoalStatus.PENDING, GoalStatus.ACTIVE)]

    def get_goal_summary(self) -> GoalSummary:
        main_summary = None
        if self.main_goal is not None:
            main_summary = MainGoalSummary(
                description=self.main_goal.description or "Unnamed goal",
                progress=clamp_progress(self.main_goal.progress or 0),
                status=self.main_goal.status.value if self.main_goal.status else "unknown",
                time_running_seconds=(_now() - self.main_goal.created_at).total_seconds(),
            )
        return GoalSummary(
            main_goal=main_summary,
            active_sub_goals=[
                SubGoalSummary(
                    id=goal.id,
                    description=goal.description or "Unnamed goal",
                    progress=clamp_progress(goal.progress or 0),
                    status=goal.status.value if goal.status else "unknown",
                    attempts=goal.attempts,
                )
                for goal in self.get_active_sub_goals()
            ],
            completed_count=len(self.completed_goals),
            failed_count=len(self.failed_goals),
            adaptation_count=len(self.strategy_adaptations),
        )
