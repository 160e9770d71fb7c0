from __future__ import annotations

import sys
import types

import pytest

from mc_agent.adapters.live_minecraft import MinescriptUnavailableError, MinescriptWorldQuery, normalize_block_name
from mc_agent.models import Block, Vec3


class _FakeMinescriptModule(types.SimpleNamespace):
    def __init__(self, blocks: dict[tuple[int, int, int], str]):
        super().__init__()
        self.blocks = blocks
        self.calls: list[tuple[int, int, int]] = []

    def player_position(self) -> list[float]:
        return [0.5, 64.0, 0.5]

    def getblock(self, x: int, y: int, z: int) -> str:
        self.calls.append((x, y, z))
        return self.blocks.get((x, y, z), "minecraft:air")

    def entities(self) -> list[dict]:
        return [
            {"type": "entity.minecraft.zombie", "name": None, "position": [3.0, 64.0, 1.0]},
            {"name": "broken"},
        ]


def test_normalize_block_name() -> None:
    assert normalize_block_name("minecraft:oak_log[axis=y]") == "oak_log"
    assert normalize_block_name("stone") == "stone"
    assert normalize_block_name("") is None


def test_world_query_reads_blocks_through_minescript(monkeypatch) -> None:
    fake = _FakeMinescriptModule({(1, 63, 0): "minecraft:stone", (0, 63, 1): "minecraft:chest[facing=north]"})
    monkeypatch.setitem(sys.modules, "minescript", fake)

    world = MinescriptWorldQuery()

    assert world.position() == Vec3(0.5, 64.0, 0.5)
    assert world.block_at(Vec3(1.9, 63.2, 0.1)) == Block(name="stone", position=Vec3(1, 63, 0))
    assert fake.calls[-1] == (1, 63, 0)
    assert world.nearby_block_types(1) == {"stone": 1, "chest": 1}
    assert world.nearest_block("chest", 2).position == Vec3(0, 63, 1)
    assert world.can_harvest(Block(name="bedrock", position=Vec3(0, 0, 0))) is False


def test_world_query_parses_entities(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "minescript", _FakeMinescriptModule({}))

    world = MinescriptWorldQuery()

    entities = world.entities()
    assert len(entities) == 1
    assert entities[0].position == Vec3(3.0, 64.0, 1.0)
    assert world.nearby_entity_types() == [entities[0].type]


def test_missing_minescript_raises(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "minescript", None)

    with pytest.raises(MinescriptUnavailableError):
        MinescriptWorldQuery()
