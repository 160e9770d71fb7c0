"""Context-aware navigation: route planning, checkpoint execution and stuck monitoring.

Route search and low-level movement are delegated to a :class:`Pathfinder`.
The navigator decorates the returned route with checkpoints and contextual
markers, walks it checkpoint by checkpoint while a progress monitor runs on the
same event loop, and reports the outcome into :class:`SpatialMemory`.

Cancellation is cooperative: the shared interrupt event is only polled between
checkpoints, so an in-flight ``move_toward`` call always runs to completion.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

from mc_agent.config import settings
from mc_agent.memory import Landmark, Location, SpatialMemory
from mc_agent.models import GoalNear, MovementConstraints, RouteStatus, Vec3
from mc_agent.world.interfaces import Pathfinder, WorldQuery

NOTABLE_BLOCKS = ("chest", "crafting_table", "furnace")
STUCK_EPSILON = 0.01


class NavigationError(RuntimeError):
    """Base class for navigation failures surfaced to the caller."""


class PlanningError(NavigationError):
    """Raised when no usable route could be planned."""


class VerificationError(NavigationError):
    """Raised when the agent arrives too far from a checkpoint."""


class NavigationInterruptedError(NavigationError):
    """Raised when the interrupt flag is observed at a checkpoint boundary."""


class NavigationBusyError(NavigationError):
    """Raised when a navigation is requested while another one is running."""


class NavigationState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


@dataclass(slots=True)
class NavigationOptions:
    """Per-call navigation options; ``None`` falls back to settings."""

    can_dig: bool = True
    can_place: bool = True
    range: float = 1
    checkpoint_interval: int | None = None
    update_interval_ms: int | None = None
    stuck_threshold_ms: int | None = None

    def constraints(self) -> MovementConstraints:
        return MovementConstraints(can_dig=self.can_dig, can_place=self.can_place)


@dataclass(slots=True)
class PathObstacle:
    position: Vec3
    block: str
    index: int


@dataclass(slots=True)
class ContextMarker:
    kind: str
    name: str
    position: Vec3
    distance: float | None = None
    description: str | None = None


@dataclass(slots=True)
class NavigationPlan:
    waypoints: list[Vec3]
    checkpoints: list[Vec3] = field(default_factory=list)
    obstacles: list[PathObstacle] = field(default_factory=list)
    markers: list[ContextMarker] = field(default_factory=list)

    @property
    def destination(self) -> Vec3:
        return self.waypoints[-1]


@dataclass(slots=True)
class StuckState:
    threshold_ms: int
    last_progress: float = 0.0
    stuck_ms: int = 0


@dataclass(slots=True)
class PathAttempt:
    start: Vec3
    end: Vec3
    successful: bool
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error: str | None = None


StuckHandler = Callable[[StuckState], Awaitable[None] | None]


class Navigator:
    """Plans and executes one movement at a time for a single agent."""

    def __init__(
        self,
        world: WorldQuery,
        pathfinder: Pathfinder,
        memory: SpatialMemory,
        *,
        interrupt: asyncio.Event | None = None,
        on_stuck: StuckHandler | None = None,
        arrival_tolerance: float | None = None,
        node_budget: int | None = None,
        notable_blocks: tuple[str, ...] = NOTABLE_BLOCKS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._world = world
        self._pathfinder = pathfinder
        self._memory = memory
        self._interrupt = interrupt or asyncio.Event()
        self._on_stuck = on_stuck or self._log_stuck
        self.arrival_tolerance = arrival_tolerance if arrival_tolerance is not None else settings.arrival_tolerance
        self.node_budget = node_budget if node_budget is not None else settings.search_node_budget
        self.notable_blocks = notable_blocks
        self._logger = logger or logging.getLogger("mc_agent.navigator")

        self._state = NavigationState.IDLE
        self.last_outcome: NavigationState | None = None
        self.current_plan: NavigationPlan | None = None
        self.stuck = StuckState(threshold_ms=settings.stuck_threshold_ms)
        self.progress = 0.0
        self.history: list[PathAttempt] = []
        self._monitor_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def monitor_running(self) -> bool:
        return self._monitor_task is not None and not self._monitor_task.done()

    def interrupt(self) -> None:
        self._interrupt.set()

    def clear_interrupt(self) -> None:
        self._interrupt.clear()

    async def move_to_location(
        self,
        target: Vec3 | Location | Landmark,
        options: NavigationOptions | None = None,
    ) -> bool:
        """Plan and walk to ``target``.

        Raises :class:`PlanningError`, :class:`VerificationError`,
        :class:`NavigationInterruptedError` or :class:`NavigationBusyError`.
        The navigator is back in ``IDLE`` whenever this returns or raises.
        """
        if self._state is not NavigationState.IDLE:
            raise NavigationBusyError(f"Navigation already in progress (state={self._state.value})")

        options = options or NavigationOptions()
        destination = target.position if isinstance(target, (Location, Landmark)) else target
        start = self._world.position()
        self.stuck = StuckState(
            threshold_ms=options.stuck_threshold_ms
            if options.stuck_threshold_ms is not None
            else settings.stuck_threshold_ms
        )
        self.progress = 0.0

        try:
            self._state = NavigationState.PLANNING
            try:
                plan = await self.plan_path_with_context(destination, options)
            except PlanningError:
                self.last_outcome = NavigationState.FAILED
                raise
            return await self.execute_path_with_context(plan, options, start=start)
        finally:
            self._state = NavigationState.IDLE

    async def move_to_place(self, name: str, options: NavigationOptions | None = None) -> bool:
        """Navigate to a remembered location or landmark by name."""
        place = self._memory.recall_place(name) or self._memory.landmarks.get(name)
        if place is None:
            raise PlanningError(f"Unknown place: {name}")
        return await self.move_to_location(place, options)

    async def plan_path_with_context(self, target: Vec3, options: NavigationOptions) -> NavigationPlan:
        goal = GoalNear(position=target, range=options.range)
        try:
            route = await self._pathfinder.plan_route(options.constraints(), goal, self.node_budget)
        except Exception as exc:  # noqa: BLE001 - any search failure is a planning failure.
            self._logger.exception("navigation_planning_error", extra={"target": target.key()})
            raise PlanningError(f"Failed to plan path: {exc}") from exc

        try:
            status = RouteStatus(route.status)
        except ValueError as exc:
            raise PlanningError(f"Failed to plan path: unknown route status {route.status!r}") from exc
        if status is not RouteStatus.SUCCESS:
            self._logger.warning("navigation_no_route", extra={"target": target.key(), "status": status.value})
            raise PlanningError(f"Failed to plan path: route search ended with {status.value}")
        if not route.waypoints:
            raise PlanningError("Failed to plan path: route has no waypoints")

        waypoints = list(route.waypoints)
        interval = max(1, options.checkpoint_interval or settings.checkpoint_interval)
        checkpoints = waypoints[::interval]
        if (len(waypoints) - 1) % interval:
            checkpoints.append(waypoints[-1])

        plan = NavigationPlan(
            waypoints=waypoints,
            checkpoints=checkpoints,
            obstacles=self.identify_obstacles(waypoints),
            markers=self.generate_contextual_markers(),
        )
        self._logger.info(
            "navigation_planned",
            extra={
                "target": target.key(),
                "waypoints": len(plan.waypoints),
                "checkpoints": len(plan.checkpoints),
                "obstacles": len(plan.obstacles),
            },
        )
        return plan

    async def execute_path_with_context(
        self,
        plan: NavigationPlan,
        options: NavigationOptions | None = None,
        *,
        start: Vec3 | None = None,
    ) -> bool:
        if not plan.waypoints:
            raise PlanningError("Invalid path provided")

        options = options or NavigationOptions()
        start = start or self._world.position()
        destination = plan.destination
        interval_ms = options.update_interval_ms or settings.update_interval_ms

        self.current_plan = plan
        self._state = NavigationState.EXECUTING
        try:
            async with self._progress_monitor(start, destination, interval_ms):
                for index, checkpoint in enumerate(plan.checkpoints):
                    if self._interrupt.is_set():
                        raise NavigationInterruptedError(
                            f"Navigation interrupted before checkpoint {index + 1}/{len(plan.checkpoints)}"
                        )
                    await self._move_to_checkpoint(checkpoint, options)
                    self._verify_and_update_context(checkpoint)
                    self._logger.debug(
                        "navigation_checkpoint_reached",
                        extra={"checkpoint": index + 1, "total": len(plan.checkpoints)},
                    )
        except NavigationInterruptedError as exc:
            self._record_failed_path(start, destination, exc)
            self.last_outcome = NavigationState.INTERRUPTED
            self._logger.info("navigation_interrupted", extra={"target": destination.key()})
            raise
        except NavigationError as exc:
            self._record_failed_path(start, destination, exc)
            self.last_outcome = NavigationState.FAILED
            self._logger.warning("navigation_failed", extra={"target": destination.key(), "error": str(exc)})
            raise
        else:
            self._record_successful_path(start, destination, plan)
            self.last_outcome = NavigationState.SUCCEEDED
            self._logger.info("navigation_succeeded", extra={"target": destination.key()})
            return True
        finally:
            self.current_plan = None
            self._state = NavigationState.IDLE

    async def _move_to_checkpoint(self, checkpoint: Vec3, options: NavigationOptions) -> None:
        try:
            await self._pathfinder.move_toward(GoalNear(position=checkpoint, range=1), options.constraints())
        except Exception as exc:  # noqa: BLE001 - movement backends raise arbitrary errors.
            raise NavigationError(f"Failed to reach checkpoint {checkpoint.key()}: {exc}") from exc

    def _verify_and_update_context(self, checkpoint: Vec3) -> None:
        distance = self._world.position().distance_to(checkpoint)
        if distance > self.arrival_tolerance:
            raise VerificationError(
                f"Navigation verification failed: off course by {distance:.1f} blocks at {checkpoint.key()}"
            )
        self._memory.update_spatial_context(self._world)

    @asynccontextmanager
    async def _progress_monitor(self, start: Vec3, destination: Vec3, interval_ms: int) -> AsyncIterator[None]:
        task = asyncio.create_task(
            self._monitor_loop(start, destination, interval_ms), name="navigation-progress-monitor"
        )
        self._monitor_task = task
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:  # noqa: BLE001 - the checkpoint loop's outcome stands.
                self._logger.exception("navigation_monitor_failed", extra={"target": destination.key()})
            finally:
                self._monitor_task = None

    async def _monitor_loop(self, start: Vec3, destination: Vec3, interval_ms: int) -> None:
        while True:
            await asyncio.sleep(interval_ms / 1000)
            await self.update_navigation_progress(start, destination, interval_ms)

    async def update_navigation_progress(self, start: Vec3, destination: Vec3, interval_ms: int) -> float:
        progress = self.calculate_progress(self._world.position(), start, destination)
        if abs(progress - self.stuck.last_progress) < STUCK_EPSILON:
            self.stuck.stuck_ms += interval_ms
            if self.stuck.stuck_ms >= self.stuck.threshold_ms:
                await self._handle_stuck()
        else:
            self.stuck.stuck_ms = 0

        self.stuck.last_progress = progress
        self.progress = progress
        return progress

    @staticmethod
    def calculate_progress(current: Vec3, start: Vec3, destination: Vec3) -> float:
        """Chord progress: share of the straight-line start→destination distance covered."""
        total = start.distance_to(destination)
        if total == 0:
            return 1.0
        remaining = current.distance_to(destination)
        return max(0.0, min(1.0, 1 - remaining / total))

    async def _handle_stuck(self) -> None:
        try:
            result = self._on_stuck(self.stuck)
            if inspect.isawaitable(result):
                await result
        except Exception:  # noqa: BLE001 - a faulty stuck policy must not kill the monitor.
            self._logger.exception("navigation_stuck_handler_failed", extra={"stuck_ms": self.stuck.stuck_ms})

    def _log_stuck(self, stuck: StuckState) -> None:
        self._logger.warning(
            "navigation_stuck",
            extra={"stuck_ms": stuck.stuck_ms, "progress": stuck.last_progress},
        )

    def identify_obstacles(self, waypoints: list[Vec3]) -> list[PathObstacle]:
        obstacles = []
        for index in range(len(waypoints) - 1):
            block = self._world.block_at(waypoints[index + 1])
            if block is not None and "air" not in block.name:
                obstacles.append(PathObstacle(position=waypoints[index + 1], block=block.name, index=index))
        return obstacles

    def generate_contextual_markers(self) -> list[ContextMarker]:
        markers = []
        for block_type in self.notable_blocks:
            block = self._world.nearest_block(block_type, settings.notable_block_radius)
            if block is not None:
                markers.append(ContextMarker(kind="notable_block", name=block.name, position=block.position))

        for visible in self._memory.get_visible_landmarks(self._world):
            markers.append(
                ContextMarker(
                    kind="landmark",
                    name=visible.landmark.name,
                    position=visible.landmark.position,
                    distance=visible.distance,
                    description=visible.landmark.description,
                )
            )
        return markers

    def _record_successful_path(self, start: Vec3, end: Vec3, plan: NavigationPlan) -> None:
        self.history.append(PathAttempt(start=start, end=end, successful=True))
        self._memory.remember_path(start.key(), end.key(), plan.waypoints, plan.obstacles)

    def _record_failed_path(self, start: Vec3, end: Vec3, error: Exception) -> None:
        self.history.append(PathAttempt(start=start, end=end, successful=False, error=str(error)))
