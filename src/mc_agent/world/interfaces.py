"""Capability contracts for the world handle consumed by agent components."""

from typing import Protocol

from mc_agent.models import Block, EntityInfo, GoalNear, MovementConstraints, RouteResult, Vec3


class WorldQuery(Protocol):
    """Read-only view of the world around the agent."""

    def position(self) -> Vec3:
        """Return the agent's current position."""

    def block_at(self, position: Vec3) -> Block | None:
        """Return the block occupying ``position`` or ``None`` when unloaded."""

    def biome_at(self, position: Vec3) -> str | None:
        """Return the biome name at ``position``."""

    def nearby_block_types(self, radius: int) -> dict[str, int]:
        """Return a block-name histogram within ``radius``."""

    def nearby_entity_types(self) -> list[str]:
        """Return entity type names near the agent."""

    def entities(self) -> list[EntityInfo]:
        """Return entities currently tracked by the client."""

    def nearest_block(self, name: str, radius: int) -> Block | None:
        """Return the nearest block named ``name`` within ``radius``."""

    def can_harvest(self, block: Block) -> bool:
        """Return whether the held tool can harvest ``block``."""


class Pathfinder(Protocol):
    """Route search and movement service."""

    async def plan_route(
        self, constraints: MovementConstraints, target: GoalNear, node_budget: int
    ) -> RouteResult:
        """Search a route to ``target`` expanding at most ``node_budget`` nodes."""

    async def move_toward(self, target: GoalNear, constraints: MovementConstraints) -> None:
        """Walk the agent to ``target``; raise when it cannot be reached."""
