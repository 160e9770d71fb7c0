"""Deterministic in-memory voxel world and grid route service.

Used by the CLI demo commands and the test-suite, in the same way a demo
locator stands in for a seed-backed backend: behaviour is predictable but not
faithful to Minecraft movement physics.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from typing import Iterable

from mc_agent.models import Block, EntityInfo, GoalNear, MovementConstraints, RouteResult, RouteStatus, Vec3

Cell = tuple[int, int, int]

AIR = "air"
UNBREAKABLE = frozenset({"bedrock", "barrier", "end_portal_frame"})


def _cell(position: Vec3) -> Cell:
    return (math.floor(position.x), math.floor(position.y), math.floor(position.z))


class VoxelWorld:
    """Sparse block store; unset cells inside the loaded area read as air."""

    def __init__(
        self,
        agent_position: Vec3,
        *,
        biome: str = "plains",
        loaded_radius: int | None = None,
        unbreakable: Iterable[str] = UNBREAKABLE,
    ) -> None:
        self._agent_position = agent_position
        self._biome = biome
        self._loaded_radius = loaded_radius
        self._unbreakable = frozenset(unbreakable)
        self._blocks: dict[Cell, str] = {}
        self._entities: list[EntityInfo] = []

    @classmethod
    def flat(cls, *, size: int = 48, ground_y: int = 63, ground: str = "grass_block", **kwargs) -> VoxelWorld:
        """Build a square flat world with the agent standing at the origin."""
        world = cls(Vec3(0, ground_y + 1, 0), **kwargs)
        world.fill(Vec3(-size, ground_y, -size), Vec3(size, ground_y, size), ground)
        return world

    def set_block(self, position: Vec3, name: str) -> None:
        cell = _cell(position)
        if name == AIR:
            self._blocks.pop(cell, None)
        else:
            self._blocks[cell] = name

    def fill(self, corner_a: Vec3, corner_b: Vec3, name: str) -> None:
        (ax, ay, az), (bx, by, bz) = _cell(corner_a), _cell(corner_b)
        for x in range(min(ax, bx), max(ax, bx) + 1):
            for y in range(min(ay, by), max(ay, by) + 1):
                for z in range(min(az, bz), max(az, bz) + 1):
                    self.set_block(Vec3(x, y, z), name)

    def add_entity(self, entity: EntityInfo) -> None:
        self._entities.append(entity)

    def teleport(self, position: Vec3) -> None:
        self._agent_position = position

    # WorldQuery

    def position(self) -> Vec3:
        return self._agent_position

    def block_at(self, position: Vec3) -> Block | None:
        cell = _cell(position)
        if self._loaded_radius is not None:
            ax, _, az = _cell(self._agent_position)
            if max(abs(cell[0] - ax), abs(cell[2] - az)) > self._loaded_radius:
                return None
        return Block(name=self._blocks.get(cell, AIR), position=Vec3(*cell))

    def biome_at(self, position: Vec3) -> str | None:
        return self._biome

    def nearby_block_types(self, radius: int) -> dict[str, int]:
        histogram: dict[str, int] = {}
        for block in self._blocks_within(radius):
            histogram[block.name] = histogram.get(block.name, 0) + 1
        return histogram

    def nearby_entity_types(self) -> list[str]:
        return [entity.type for entity in self._entities]

    def entities(self) -> list[EntityInfo]:
        return list(self._entities)

    def nearest_block(self, name: str, radius: int) -> Block | None:
        matches = [block for block in self._blocks_within(radius) if block.name == name]
        if not matches:
            return None
        return min(matches, key=lambda block: block.position.distance_to(self._agent_position))

    def can_harvest(self, block: Block) -> bool:
        return block.name not in self._unbreakable

    def is_solid(self, cell: Cell) -> bool:
        return cell in self._blocks

    def _blocks_within(self, radius: float) -> list[Block]:
        origin = self._agent_position
        found = []
        for cell, name in self._blocks.items():
            position = Vec3(*cell)
            if position.distance_to(origin) <= radius:
                found.append(Block(name=name, position=position))
        return found


class GridPathfinder:
    """Breadth-first route service over walkable voxel cells.

    A cell is walkable when the cell below is solid and the body and head cells
    are free. Horizontal moves may step up or down one block. Movement is a
    teleport to the requested target after ``step_delay_seconds``.
    """

    def __init__(self, world: VoxelWorld, *, step_delay_seconds: float = 0.0) -> None:
        self._world = world
        self._step_delay_seconds = step_delay_seconds
        self.last_constraints: MovementConstraints | None = None
        self.moves: list[GoalNear] = []

    async def plan_route(
        self, constraints: MovementConstraints, target: GoalNear, node_budget: int
    ) -> RouteResult:
        self.last_constraints = constraints
        start = _cell(self._world.position())
        goal = target.position

        parents: dict[Cell, Cell | None] = {start: None}
        frontier: deque[Cell] = deque([start])
        expanded = 0
        while frontier:
            if expanded >= node_budget:
                return RouteResult(status=RouteStatus.TIMEOUT)
            current = frontier.popleft()
            expanded += 1
            if Vec3(*current).distance_to(goal) <= target.range:
                return RouteResult(status=RouteStatus.SUCCESS, waypoints=self._unwind(parents, current))
            for neighbor in self._neighbors(current):
                if neighbor not in parents:
                    parents[neighbor] = current
                    frontier.append(neighbor)

        return RouteResult(status=RouteStatus.NO_PATH)

    async def move_toward(self, target: GoalNear, constraints: MovementConstraints) -> None:
        self.last_constraints = constraints
        self.moves.append(target)
        await asyncio.sleep(self._step_delay_seconds)
        self._world.teleport(target.position)

    def is_walkable(self, cell: Cell) -> bool:
        x, y, z = cell
        if self._world.block_at(Vec3(x, y - 1, z)) is None:
            return False
        return (
            self._world.is_solid((x, y - 1, z))
            and not self._world.is_solid((x, y, z))
            and not self._world.is_solid((x, y + 1, z))
        )

    def _neighbors(self, cell: Cell) -> list[Cell]:
        x, y, z = cell
        found: list[Cell] = []
        for dx, dz in ((1, 0), (-1, 0), (0, 1), (0, -1)):
            for dy in (0, 1, -1):
                candidate = (x + dx, y + dy, z + dz)
                if self.is_walkable(candidate):
                    found.append(candidate)
                    break
        return found

    @staticmethod
    def _unwind(parents: dict[Cell, Cell | None], end: Cell) -> list[Vec3]:
        path: list[Vec3] = []
        cursor: Cell | None = end
        while cursor is not None:
            path.append(Vec3(*cursor))
            cursor = parents[cursor]
        path.reverse()
        return path
