"""Live Minecraft world adapter.

The adapter reads world state through a locally-imported ``minescript`` module
so scanning and memory can run against a real game instance, while still being
testable in CI where the mod is not available.
"""

from __future__ import annotations

import importlib
import math
from types import ModuleType
from typing import Any

from mc_agent.models import Block, EntityInfo, Vec3

_UNBREAKABLE = frozenset({"bedrock", "barrier", "end_portal_frame", "command_block"})


class MinescriptUnavailableError(RuntimeError):
    """Raised when minescript is not installed or lacks the world-query API."""


def normalize_block_name(raw: str | None) -> str | None:
    """``minecraft:oak_log[axis=y]`` -> ``oak_log``."""
    if not raw:
        return None
    name = raw.split("[", 1)[0]
    return name.split(":", 1)[-1]


class MinescriptWorldQuery:
    """``WorldQuery`` over minescript's ``player_position``/``getblock``/``entities`` calls."""

    def __init__(self, module: ModuleType | None = None) -> None:
        self._module = module or self._resolve_module()

    @staticmethod
    def _resolve_module() -> ModuleType:
        try:
            module = importlib.import_module("minescript")
        except Exception as exc:  # noqa: BLE001
            raise MinescriptUnavailableError(
                "Unable to import minescript. Install it and ensure Minecraft + the mod are running."
            ) from exc

        for attr in ("player_position", "getblock"):
            if not callable(getattr(module, attr, None)):
                raise MinescriptUnavailableError(f"Imported minescript but it has no `{attr}` function.")
        return module

    def position(self) -> Vec3:
        x, y, z = self._module.player_position()
        return Vec3(float(x), float(y), float(z))

    def block_at(self, position: Vec3) -> Block | None:
        x, y, z = math.floor(position.x), math.floor(position.y), math.floor(position.z)
        try:
            raw = self._module.getblock(x, y, z)
        except Exception:  # noqa: BLE001
            return None
        name = normalize_block_name(raw)
        if name is None:
            return None
        return Block(name=name, position=Vec3(x, y, z))

    def biome_at(self, position: Vec3) -> str | None:
        return None

    def nearby_block_types(self, radius: int) -> dict[str, int]:
        origin = self.position().floored()
        histogram: dict[str, int] = {}
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                for dz in range(-radius, radius + 1):
                    block = self.block_at(origin.offset(dx, dy, dz))
                    if block is None or block.name == "air":
                        continue
                    histogram[block.name] = histogram.get(block.name, 0) + 1
        return histogram

    def entities(self) -> list[EntityInfo]:
        fetch = getattr(self._module, "entities", None)
        if not callable(fetch):
            return []
        try:
            raw_entities = fetch()
        except Exception:  # noqa: BLE001
            return []

        found = []
        for raw in raw_entities or []:
            entity_type = _field(raw, "type")
            position = _field(raw, "position")
            if entity_type is None or position is None:
                continue
            found.append(
                EntityInfo(
                    type=normalize_block_name(str(entity_type)) or str(entity_type),
                    name=_field(raw, "name"),
                    position=Vec3.from_list(position),
                )
            )
        return found

    def nearby_entity_types(self) -> list[str]:
        return [entity.type for entity in self.entities()]

    def nearest_block(self, name: str, radius: int) -> Block | None:
        origin = self.position()
        best: Block | None = None
        best_distance = math.inf
        base = origin.floored()
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                for dz in range(-radius, radius + 1):
                    block = self.block_at(base.offset(dx, dy, dz))
                    if block is None or block.name != name:
                        continue
                    distance = origin.distance_to(block.position)
                    if distance <= radius and distance < best_distance:
                        best, best_distance = block, distance
        return best

    def can_harvest(self, block: Block) -> bool:
        return block.name not in _UNBREAKABLE


def _field(raw: Any, key: str) -> Any:
    if isinstance(raw, dict):
        return raw.get(key)
    return getattr(raw, key, None)
