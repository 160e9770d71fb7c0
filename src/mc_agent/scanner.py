"""Spatial scanning of the blocks, terrain, sightlines and entities around the agent.

A scan samples concentric rings around the agent. Angular density grows with
the ring radius so that sample spacing stays roughly one block on every ring.
Each column is scanned at most once per scan, so block counts in a snapshot
and its summary are per unique column, even where rings overlap.
Every world lookup may come back empty (unloaded chunk, disconnected client);
such samples are skipped and the scan carries on with partial data.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from mc_agent.config import settings
from mc_agent.models import Block, Vec3
from mc_agent.world.interfaces import WorldQuery

AIR = "air"
TRANSPARENT = frozenset({"air", "cave_air"})

SIGHTLINE_DIRECTIONS: tuple[tuple[int, int], ...] = (
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
    (-1, 0),
    (-1, -1),
    (0, -1),
    (1, -1),
)

# Feet, head and one block above the head.
SIGHTLINE_SLAB = (0, 1, 2)


@dataclass(slots=True)
class BlockSighting:
    position: Vec3
    distance: float
    accessible: bool


@dataclass(slots=True)
class SightlineObstacle:
    block: str
    position: Vec3
    distance: int


@dataclass(slots=True)
class Sightline:
    direction: tuple[int, int]
    clear: bool
    distance: int
    obstacle: SightlineObstacle | None = None


@dataclass(slots=True)
class EntitySighting:
    type: str
    name: str | None
    position: Vec3
    distance: float


@dataclass(slots=True)
class TerrainMap:
    """Surface heights keyed by ``(dx, dz)`` grid offsets; ``None`` means unknown."""

    elevation: dict[tuple[int, int], int | None] = field(default_factory=dict)

    def known_elevations(self) -> list[int]:
        return [height for height in self.elevation.values() if height is not None]


@dataclass(slots=True)
class ScanSnapshot:
    position: Vec3
    timestamp: datetime
    biome: str | None
    blocks: dict[str, list[BlockSighting]]
    terrain: TerrainMap
    sightlines: dict[tuple[int, int], Sightline]
    entities: list[EntitySighting]

    @property
    def clear_paths(self) -> list[Sightline]:
        return [line for line in self.sightlines.values() if line.clear]

    @property
    def obstacles(self) -> list[SightlineObstacle]:
        return [line.obstacle for line in self.sightlines.values() if line.obstacle is not None]


@dataclass(slots=True)
class ResourceEntry:
    name: str
    count: int
    nearest: float


@dataclass(slots=True)
class EnvironmentSummary:
    timestamp: datetime
    position: Vec3
    nearby_blocks: list[ResourceEntry]
    accessible_resources: list[ResourceEntry]
    clear_path_count: int
    obstacle_count: int
    entity_count: int


def ring_sample_count(radius: int) -> int:
    return max(8, math.floor(2 * math.pi * radius))


def ring_points(center: Vec3, radius: int) -> list[tuple[int, int]]:
    """Return the rounded ``(x, z)`` sample points of one ring, in angle order."""
    steps = ring_sample_count(radius)
    angle_step = 2 * math.pi / steps
    points = []
    for index in range(steps):
        angle = index * angle_step
        x = math.floor(center.x + radius * math.cos(angle) + 0.5)
        z = math.floor(center.z + radius * math.sin(angle) + 0.5)
        points.append((x, z))
    return points


def summarize_snapshot(snapshot: ScanSnapshot) -> EnvironmentSummary:
    nearby: list[ResourceEntry] = []
    accessible: list[ResourceEntry] = []
    for name, sightings in snapshot.blocks.items():
        if not sightings:
            continue
        nearby.append(
            ResourceEntry(name=name, count=len(sightings), nearest=min(s.distance for s in sightings))
        )
        reachable = [s for s in sightings if s.accessible]
        if reachable:
            accessible.append(
                ResourceEntry(name=name, count=len(reachable), nearest=min(s.distance for s in reachable))
            )

    nearby.sort(key=lambda entry: entry.nearest)
    accessible.sort(key=lambda entry: entry.nearest)
    return EnvironmentSummary(
        timestamp=snapshot.timestamp,
        position=snapshot.position,
        nearby_blocks=nearby,
        accessible_resources=accessible,
        clear_path_count=len(snapshot.clear_paths),
        obstacle_count=len(snapshot.obstacles),
        entity_count=len(snapshot.entities),
    )


class SpatialScanner:
    """Samples the world around the agent into a :class:`ScanSnapshot`."""

    def __init__(
        self,
        world: WorldQuery,
        *,
        scan_radius: int | None = None,
        height_range: int | None = None,
        sightline_distance: int | None = None,
        terrain_step: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._world = world
        self.scan_radius = scan_radius if scan_radius is not None else settings.scan_radius
        self.height_range = height_range if height_range is not None else settings.scan_height_range
        self.sightline_distance = (
            sightline_distance if sightline_distance is not None else settings.sightline_max_distance
        )
        self.terrain_step = terrain_step if terrain_step is not None else settings.terrain_grid_step
        self._logger = logger or logging.getLogger("mc_agent.scanner")
        self.last_scan: ScanSnapshot | None = None

    def scan(self) -> ScanSnapshot:
        origin = self._world.position()
        blocks: dict[str, list[BlockSighting]] = {}
        visited: set[tuple[int, int]] = set()
        for radius in range(1, self.scan_radius + 1, 2):
            self._scan_ring(origin, radius, blocks, visited)

        snapshot = ScanSnapshot(
            position=origin,
            timestamp=datetime.now(timezone.utc),
            biome=self._world.biome_at(origin),
            blocks=blocks,
            terrain=self.analyze_terrain(origin),
            sightlines=self.analyze_sightlines(origin),
            entities=self.nearby_entities(origin),
        )
        self.last_scan = snapshot
        self._logger.debug(
            "scan_completed",
            extra={
                "block_types": len(blocks),
                "columns": len(visited),
                "entities": len(snapshot.entities),
            },
        )
        return snapshot

    def get_summary(self) -> EnvironmentSummary | None:
        if self.last_scan is None:
            return None
        return summarize_snapshot(self.last_scan)

    def _scan_ring(
        self,
        center: Vec3,
        radius: int,
        blocks: dict[str, list[BlockSighting]],
        visited: set[tuple[int, int]],
    ) -> None:
        base_y = math.floor(center.y)
        for x, z in ring_points(center, radius):
            # Neighbouring angles on small rings round to the same column.
            if (x, z) in visited:
                continue
            visited.add((x, z))
            for y in range(base_y - self.height_range, base_y + self.height_range + 1):
                block = self._world.block_at(Vec3(x, y, z))
                if block is None or block.name == AIR:
                    continue
                blocks.setdefault(block.name, []).append(
                    BlockSighting(
                        position=block.position,
                        distance=center.distance_to(block.position),
                        accessible=self.is_accessible(block),
                    )
                )

    def is_accessible(self, block: Block | None) -> bool:
        """A block is accessible with two free cells above it and a tool able to harvest it."""
        if block is None:
            return False
        standing = self._world.block_at(block.position.offset(dy=1))
        head = self._world.block_at(block.position.offset(dy=2))
        if standing is None or head is None:
            return False
        if standing.name != AIR or head.name != AIR:
            return False
        return bool(self._world.can_harvest(block))

    def analyze_terrain(self, origin: Vec3) -> TerrainMap:
        terrain = TerrainMap()
        for dx in range(-self.scan_radius, self.scan_radius + 1, self.terrain_step):
            for dz in range(-self.scan_radius, self.scan_radius + 1, self.terrain_step):
                terrain.elevation[(dx, dz)] = self.find_surface(origin, origin.x + dx, origin.z + dz)
        return terrain

    def find_surface(self, origin: Vec3, x: float, z: float) -> int | None:
        start_y = math.floor(origin.y) + self.height_range
        for y in range(start_y, start_y - self.height_range * 2 - 1, -1):
            block = self._world.block_at(Vec3(x, y, z))
            below = self._world.block_at(Vec3(x, y - 1, z))
            if block is None or below is None:
                continue
            if block.name == AIR and below.name != AIR:
                return y - 1
        return None

    def analyze_sightlines(self, origin: Vec3) -> dict[tuple[int, int], Sightline]:
        return {direction: self.check_sightline(origin, *direction) for direction in SIGHTLINE_DIRECTIONS}

    def check_sightline(self, origin: Vec3, dx: int, dz: int) -> Sightline:
        base_y = math.floor(origin.y)
        for distance in range(1, self.sightline_distance + 1):
            x = math.floor(origin.x + dx * distance)
            z = math.floor(origin.z + dz * distance)
            for offset in SIGHTLINE_SLAB:
                block = self._world.block_at(Vec3(x, base_y + offset, z))
                if block is None or block.name in TRANSPARENT:
                    continue
                return Sightline(
                    direction=(dx, dz),
                    clear=False,
                    distance=distance,
                    obstacle=SightlineObstacle(block=block.name, position=block.position, distance=distance),
                )
        return Sightline(direction=(dx, dz), clear=True, distance=self.sightline_distance)

    def nearby_entities(self, origin: Vec3) -> list[EntitySighting]:
        sightings = []
        for entity in self._world.entities() or []:
            if entity is None or entity.position is None:
                continue
            distance = origin.distance_to(entity.position)
            if distance > self.scan_radius:
                continue
            sightings.append(
                EntitySighting(type=entity.type, name=entity.name, position=entity.position, distance=distance)
            )
        sightings.sort(key=lambda sighting: sighting.distance)
        return sightings
