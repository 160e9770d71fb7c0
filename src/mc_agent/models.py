from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Vec3:
    x: float
    y: float
    z: float

    def offset(self, dx: float = 0, dy: float = 0, dz: float = 0) -> Vec3:
        return Vec3(self.x + dx, self.y + dy, self.z + dz)

    def floored(self) -> Vec3:
        return Vec3(math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def distance_to(self, other: Vec3) -> float:
        return math.dist((self.x, self.y, self.z), (other.x, other.y, other.z))

    def key(self) -> str:
        """Floored ``x,y,z`` key used by the path cache."""
        return f"{math.floor(self.x)},{math.floor(self.y)},{math.floor(self.z)}"

    def as_list(self) -> list[float]:
        return [self.x, self.y, self.z]

    @classmethod
    def from_list(cls, values: Any) -> Vec3:
        if isinstance(values, dict):
            return cls(float(values["x"]), float(values["y"]), float(values["z"]))
        x, y, z = values
        return cls(float(x), float(y), float(z))


@dataclass(frozen=True, slots=True)
class Block:
    name: str
    position: Vec3


@dataclass(slots=True)
class EntityInfo:
    type: str
    name: str | None
    position: Vec3


@dataclass(slots=True)
class MovementConstraints:
    """Movement permissions forwarded to the pathfinding service."""

    can_dig: bool = True
    can_place: bool = True


@dataclass(frozen=True, slots=True)
class GoalNear:
    """Target region: a point plus an acceptance radius."""

    position: Vec3
    range: float = 1


class RouteStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"
    NO_PATH = "no_path"


@dataclass(slots=True)
class RouteResult:
    status: RouteStatus
    waypoints: list[Vec3] = field(default_factory=list)
