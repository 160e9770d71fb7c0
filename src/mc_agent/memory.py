"""Spatial memory: named places, regions, landmarks and a path-outcome cache."""

from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from mc_agent.config import settings
from mc_agent.models import Vec3
from mc_agent.scanner import ScanSnapshot, summarize_snapshot
from mc_agent.world.interfaces import WorldQuery


def _now() -> datetime:
    return datetime.now(timezone.utc)


def path_key(start: Vec3, end: Vec3) -> str:
    """Directional cache key ``"x,y,z->x,y,z"`` over floored coordinates."""
    return f"{start.key()}->{end.key()}"


@dataclass(slots=True)
class PlaceContext:
    biome: str | None = None
    nearby_blocks: dict[str, int] = field(default_factory=dict)
    landmarks: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_now)


@dataclass(slots=True)
class Location:
    name: str
    position: Vec3
    context: PlaceContext


@dataclass(slots=True)
class Region:
    name: str
    bounds_min: Vec3
    bounds_max: Vec3
    features: list[str] = field(default_factory=list)
    sub_locations: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=_now)

    def contains(self, position: Vec3) -> bool:
        return (
            self.bounds_min.x <= position.x <= self.bounds_max.x
            and self.bounds_min.y <= position.y <= self.bounds_max.y
            and self.bounds_min.z <= position.z <= self.bounds_max.z
        )


@dataclass(slots=True)
class Landmark:
    name: str
    position: Vec3
    description: str
    category: str = "natural"
    discovered: datetime = field(default_factory=_now)


@dataclass(slots=True)
class VisibleLandmark:
    landmark: Landmark
    distance: float


@dataclass(slots=True)
class PathRecord:
    key: str
    waypoints: list[Vec3]
    obstacles: list[Any]
    use_count: int
    last_used: datetime


@dataclass(slots=True)
class ResourceHint:
    name: str
    distance: float
    quantity: int
    accessible: bool = True


@dataclass(slots=True)
class ClearPath:
    direction: tuple[int, int]
    distance: int
    has_obstacles: bool


@dataclass(slots=True)
class ContextAnalysis:
    nearest_resources: list[ResourceHint]
    clear_paths: list[ClearPath]
    terrain_difficulty: str


@dataclass(slots=True)
class SpatialContext:
    position: Vec3
    biome: str | None
    nearby_blocks: dict[str, int]
    nearby_entities: list[str]
    visible_landmarks: list[VisibleLandmark]
    timestamp: datetime = field(default_factory=_now)
    scan: ScanSnapshot | None = None
    analysis: ContextAnalysis | None = None


@dataclass(slots=True)
class ContextSummary:
    position: str | None
    biome: str | None
    nearby_blocks: list[str]
    visible_landmarks: list[str]
    context_age: str


def classify_terrain(elevations: list[int]) -> str:
    if not elevations:
        return "unknown"
    spread = max(elevations) - min(elevations)
    if spread <= 2:
        return "easy"
    if spread <= 5:
        return "moderate"
    return "difficult"


class SpatialMemory:
    """Keyed tables of remembered places plus the agent's current spatial context."""

    def __init__(
        self,
        *,
        visibility_radius: float | None = None,
        resource_range: float | None = None,
        max_paths: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.visibility_radius = (
            visibility_radius if visibility_radius is not None else settings.landmark_visibility_radius
        )
        self.resource_range = resource_range if resource_range is not None else settings.resource_range
        self.max_paths = max_paths if max_paths is not None else settings.path_cache_max_entries
        self._logger = logger or logging.getLogger("mc_agent.memory")

        self.locations: dict[str, Location] = {}
        self.regions: dict[str, Region] = {}
        self.landmarks: dict[str, Landmark] = {}
        self.paths: dict[str, PathRecord] = {}
        self.context: SpatialContext | None = None
        self.last_update: datetime | None = None

    # Places and regions

    def remember_place(self, name: str, position: Vec3, context: PlaceContext | None = None) -> Location:
        location = Location(name=name, position=position, context=context or PlaceContext())
        self.locations[name] = location
        self._logger.info("place_remembered", extra={"place": name, "position": position.key()})
        return location

    def recall_place(self, name: str) -> Location | None:
        return self.locations.get(name)

    def define_region(
        self, name: str, bounds_min: Vec3, bounds_max: Vec3, features: list[str] | None = None
    ) -> Region:
        region = Region(name=name, bounds_min=bounds_min, bounds_max=bounds_max, features=list(features or []))
        self.regions[name] = region
        return region

    def add_sub_location(self, region_name: str, location_name: str) -> bool:
        region = self.regions.get(region_name)
        if region is None:
            return False
        if location_name not in region.sub_locations:
            region.sub_locations.append(location_name)
        return True

    def regions_containing(self, position: Vec3) -> list[Region]:
        return [region for region in self.regions.values() if region.contains(position)]

    # Paths

    def remember_path(
        self,
        from_key: str,
        to_key: str,
        waypoints: list[Vec3] | None,
        obstacles: list[Any] | None,
    ) -> PathRecord:
        key = f"{from_key}->{to_key}"
        previous = self.paths.pop(key, None)
        record = PathRecord(
            key=key,
            waypoints=list(waypoints or []),
            obstacles=list(obstacles or []),
            use_count=(previous.use_count if previous else 0) + 1,
            last_used=_now(),
        )
        self.paths[key] = record
        self._evict_paths()
        return record

    def get_known_paths(self) -> list[dict[str, Any]]:
        return [
            {"route": key, "last_used": record.last_used, "use_count": record.use_count}
            for key, record in self.paths.items()
        ]

    def _evict_paths(self) -> None:
        if self.max_paths is None:
            return
        while len(self.paths) > self.max_paths:
            oldest = min(self.paths.values(), key=lambda record: record.last_used)
            del self.paths[oldest.key]
            self._logger.debug("path_evicted", extra={"route": oldest.key})

    # Landmarks

    def add_landmark(self, name: str, position: Vec3, description: str, category: str = "natural") -> Landmark:
        landmark = Landmark(name=name, position=position, description=description, category=category)
        self.landmarks[name] = landmark
        self._logger.info("landmark_added", extra={"landmark": name, "category": category})
        return landmark

    def get_nearby_landmarks(self, position: Vec3, radius: float = 16) -> list[VisibleLandmark]:
        nearby = [
            VisibleLandmark(landmark=landmark, distance=position.distance_to(landmark.position))
            for landmark in self.landmarks.values()
        ]
        nearby = [entry for entry in nearby if entry.distance <= radius]
        nearby.sort(key=lambda entry: entry.distance)
        return nearby

    def get_visible_landmarks(self, world: WorldQuery) -> list[VisibleLandmark]:
        return self.get_nearby_landmarks(world.position(), self.visibility_radius)

    # Context

    def update_spatial_context(self, world: WorldQuery, scan: ScanSnapshot | None = None) -> SpatialContext:
        context = SpatialContext(
            position=world.position(),
            biome=world.biome_at(world.position()),
            nearby_blocks=dict(world.nearby_block_types(8) or {}),
            nearby_entities=list(world.nearby_entity_types() or []),
            visible_landmarks=self.get_visible_landmarks(world),
        )
        if scan is not None:
            context.scan = scan
            context.analysis = ContextAnalysis(
                nearest_resources=self.analyze_nearest_resources(scan),
                clear_paths=self.analyze_clear_paths(scan),
                terrain_difficulty=classify_terrain(scan.terrain.known_elevations()),
            )

        self.context = context
        self.last_update = context.timestamp
        return context

    def analyze_nearest_resources(self, scan: ScanSnapshot) -> list[ResourceHint]:
        summary = summarize_snapshot(scan)
        return [
            ResourceHint(name=entry.name, distance=entry.nearest, quantity=entry.count)
            for entry in summary.accessible_resources
            if entry.nearest <= self.resource_range
        ]

    @staticmethod
    def analyze_clear_paths(scan: ScanSnapshot) -> list[ClearPath]:
        return [
            ClearPath(direction=line.direction, distance=line.distance, has_obstacles=not line.clear)
            for line in scan.sightlines.values()
        ]

    def summarize_context(self) -> ContextSummary:
        if self.context is None or self.last_update is None:
            return ContextSummary(
                position=None,
                biome=None,
                nearby_blocks=[],
                visible_landmarks=[],
                context_age="No context available",
            )

        age = (_now() - self.last_update).total_seconds()
        common = Counter(self.context.nearby_blocks).most_common(5)
        return ContextSummary(
            position=f"({self.context.position.key().replace(',', ', ')})",
            biome=self.context.biome,
            nearby_blocks=[name for name, _ in common],
            visible_landmarks=[entry.landmark.name for entry in self.context.visible_landmarks[:3]],
            context_age=f"{int(age)}s ago",
        )

    # Snapshot

    def get_json(self) -> dict[str, Any]:
        return {
            "locations": {
                name: {
                    "position": loc.position.as_list(),
                    "context": {
                        "biome": loc.context.biome,
                        "nearby_blocks": loc.context.nearby_blocks,
                        "landmarks": loc.context.landmarks,
                        "timestamp": loc.context.timestamp.isoformat(),
                    },
                }
                for name, loc in self.locations.items()
            },
            "regions": {
                name: {
                    "bounds": {"min": region.bounds_min.as_list(), "max": region.bounds_max.as_list()},
                    "features": region.features,
                    "sub_locations": region.sub_locations,
                    "timestamp": region.timestamp.isoformat(),
                }
                for name, region in self.regions.items()
            },
            "landmarks": {
                name: {
                    "position": landmark.position.as_list(),
                    "description": landmark.description,
                    "type": landmark.category,
                    "discovered": landmark.discovered.isoformat(),
                }
                for name, landmark in self.landmarks.items()
            },
            "paths": {
                key: {
                    "waypoints": [point.as_list() for point in record.waypoints],
                    "obstacles": [_plain(obstacle) for obstacle in record.obstacles],
                    "use_count": record.use_count,
                    "last_used": record.last_used.isoformat(),
                }
                for key, record in self.paths.items()
            },
        }

    def load_json(self, payload: dict[str, Any]) -> None:
        """Restore the tables present in ``payload``; malformed entries are skipped.

        All tables are rebuilt before any of them is replaced, so a bad payload
        never leaves memory half-restored.
        """
        tables: dict[str, dict[str, Any]] = {}
        for table, build in (
            ("locations", _location_from_json),
            ("regions", _region_from_json),
            ("landmarks", _landmark_from_json),
            ("paths", _path_from_json),
        ):
            entries = payload.get(table)
            if not isinstance(entries, dict):
                continue
            restored = {}
            for name, entry in entries.items():
                item = build(name, entry) if isinstance(entry, dict) else None
                if item is None:
                    self._logger.warning("memory_entry_skipped", extra={"table": table, "entry": name})
                    continue
                restored[name] = item
            tables[table] = restored

        self.locations = tables.get("locations", self.locations)
        self.regions = tables.get("regions", self.regions)
        self.landmarks = tables.get("landmarks", self.landmarks)
        self.paths = tables.get("paths", self.paths)

    def save(self, file_path: str | Path) -> Path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.get_json(), indent=2, default=str), encoding="utf-8")
        return path

    def load(self, file_path: str | Path) -> bool:
        path = Path(file_path)
        if not path.exists():
            return False
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            self._logger.warning("memory_snapshot_unreadable", extra={"path": str(path)})
            return False
        if not isinstance(payload, dict):
            self._logger.warning("memory_snapshot_unreadable", extra={"path": str(path)})
            return False
        self.load_json(payload)
        self._logger.info(
            "memory_loaded",
            extra={"locations": len(self.locations), "landmarks": len(self.landmarks), "paths": len(self.paths)},
        )
        return True


def _plain(value: Any) -> Any:
    return asdict(value) if is_dataclass(value) else value


def _parse_time(value: Any) -> datetime:
    """ISO strings or epoch milliseconds; anything else reads as now."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return _now()
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return _now()
    return _now()


def _vec(raw: Any) -> Vec3 | None:
    try:
        return Vec3.from_list(raw)
    except (KeyError, TypeError, ValueError):
        return None


def _location_from_json(name: str, entry: dict[str, Any]) -> Location | None:
    position = _vec(entry.get("position"))
    if position is None:
        return None
    context = entry.get("context") if isinstance(entry.get("context"), dict) else {}
    return Location(
        name=name,
        position=position,
        context=PlaceContext(
            biome=context.get("biome"),
            nearby_blocks=dict(context.get("nearby_blocks") or {}),
            landmarks=list(context.get("landmarks") or []),
            timestamp=_parse_time(context.get("timestamp")),
        ),
    )


def _region_from_json(name: str, entry: dict[str, Any]) -> Region | None:
    bounds = entry.get("bounds") if isinstance(entry.get("bounds"), dict) else {}
    bounds_min, bounds_max = _vec(bounds.get("min")), _vec(bounds.get("max"))
    if bounds_min is None or bounds_max is None:
        return None
    return Region(
        name=name,
        bounds_min=bounds_min,
        bounds_max=bounds_max,
        features=list(entry.get("features") or []),
        sub_locations=list(entry.get("sub_locations") or []),
        timestamp=_parse_time(entry.get("timestamp")),
    )


def _landmark_from_json(name: str, entry: dict[str, Any]) -> Landmark | None:
    position = _vec(entry.get("position"))
    if position is None:
        return None
    return Landmark(
        name=name,
        position=position,
        description=entry.get("description") or "",
        category=entry.get("type") or "natural",
        discovered=_parse_time(entry.get("discovered")),
    )


def _path_from_json(key: str, entry: dict[str, Any]) -> PathRecord | None:
    waypoints = [_vec(point) for point in entry.get("waypoints") or []]
    if any(point is None for point in waypoints):
        return None
    try:
        use_count = int(entry.get("use_count") or 0)
    except (TypeError, ValueError):
        use_count = 0
    return PathRecord(
        key=key,
        waypoints=waypoints,
        obstacles=list(entry.get("obstacles") or []),
        use_count=use_count,
        last_used=_parse_time(entry.get("last_used")),
    )
