from __future__ import annotations

import asyncio
from dataclasses import dataclass

from .goals import GoalTracker
from .memory import Landmark, Location, SpatialContext, SpatialMemory
from .models import Vec3
from .navigator import NavigationError, NavigationInterruptedError, NavigationOptions, Navigator, StuckHandler
from .scanner import SpatialScanner
from .telemetry import LoggingTelemetry, Telemetry
from .world.interfaces import Pathfinder, WorldQuery


@dataclass(slots=True)
class PursuitResult:
    goal_id: str
    started: bool
    succeeded: bool
    error: str | None = None
    blocking_ids: list[str] | None = None


class SpatialAgent:
    """Wires scanner, memory, navigator and goal tracker for one agent."""

    def __init__(
        self,
        world: WorldQuery,
        pathfinder: Pathfinder,
        *,
        memory: SpatialMemory | None = None,
        goals: GoalTracker | None = None,
        telemetry: Telemetry | None = None,
        interrupt: asyncio.Event | None = None,
        on_stuck: StuckHandler | None = None,
        arrival_tolerance: float | None = None,
        node_budget: int | None = None,
    ) -> None:
        self.memory = memory or SpatialMemory()
        self.goals = goals or GoalTracker()
        self.scanner = SpatialScanner(world)
        self.navigator = Navigator(
            world,
            pathfinder,
            self.memory,
            interrupt=interrupt,
            on_stuck=on_stuck,
            arrival_tolerance=arrival_tolerance,
            node_budget=node_budget,
        )
        self.telemetry = telemetry or LoggingTelemetry()
        self._world = world

    def observe(self) -> SpatialContext:
        snapshot = self.scanner.scan()
        context = self.memory.update_spatial_context(self._world, snapshot)
        self.telemetry.emit(
            "agent_observed",
            {
                "position": context.position.key(),
                "block_types": len(snapshot.blocks),
                "terrain": context.analysis.terrain_difficulty if context.analysis else "unknown",
            },
        )
        return context

    async def pursue(
        self,
        goal_id: str,
        target: Vec3 | Location | Landmark,
        options: NavigationOptions | None = None,
    ) -> PursuitResult:
        """Navigate toward ``target`` on behalf of ``goal_id`` and report the outcome to the tracker."""
        if not self.goals.start_goal(goal_id):
            blocking = self.goals.get_blocking_ids(goal_id)
            self.telemetry.emit("goal_blocked", {"goal_id": goal_id, "blocking_ids": blocking})
            return PursuitResult(goal_id=goal_id, started=False, succeeded=False, blocking_ids=blocking)

        try:
            await self.navigator.move_to_location(target, options)
        except NavigationInterruptedError as exc:
            self.telemetry.emit("goal_pursuit_interrupted", {"goal_id": goal_id})
            return PursuitResult(goal_id=goal_id, started=True, succeeded=False, error=str(exc))
        except NavigationError as exc:
            self.goals.record_failed_attempt(goal_id, str(exc))
            self.telemetry.emit("goal_pursuit_failed", {"goal_id": goal_id, "error": str(exc)})
            return PursuitResult(goal_id=goal_id, started=True, succeeded=False, error=str(exc))

        self.goals.complete_goal(goal_id)
        self.telemetry.emit("goal_pursuit_succeeded", {"goal_id": goal_id})
        return PursuitResult(goal_id=goal_id, started=True, succeeded=True)
