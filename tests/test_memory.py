from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from mc_agent.memory import PlaceContext, SpatialMemory, classify_terrain, path_key
from mc_agent.models import Vec3
from mc_agent.scanner import BlockSighting, ScanSnapshot, Sightline, TerrainMap
from mc_agent.world import VoxelWorld


def _snapshot() -> ScanSnapshot:
    return ScanSnapshot(
        position=Vec3(0, 64, 0),
        timestamp=datetime.now(timezone.utc),
        biome="plains",
        blocks={
            "stone": [BlockSighting(position=Vec3(2, 64, 0), distance=2.0, accessible=True)],
            "iron_ore": [BlockSighting(position=Vec3(40, 64, 0), distance=40.0, accessible=True)],
            "dirt": [BlockSighting(position=Vec3(1, 63, 0), distance=1.0, accessible=False)],
            "oak_log": [
                BlockSighting(position=Vec3(6, 64, 6), distance=8.5, accessible=True),
                BlockSighting(position=Vec3(6, 65, 6), distance=8.6, accessible=True),
            ],
        },
        terrain=TerrainMap(elevation={(0, 0): 63, (4, 0): 66, (8, 0): None}),
        sightlines={
            (1, 0): Sightline(direction=(1, 0), clear=True, distance=16),
            (-1, 0): Sightline(direction=(-1, 0), clear=False, distance=3),
        },
        entities=[],
    )


def test_remember_and_recall_place() -> None:
    memory = SpatialMemory()
    memory.remember_place("home", Vec3(10, 64, -3), PlaceContext(biome="forest"))

    assert memory.recall_place("home").position == Vec3(10, 64, -3)
    assert memory.recall_place("home").context.biome == "forest"
    assert memory.recall_place("nowhere") is None


def test_path_records_are_directional_and_count_uses() -> None:
    memory = SpatialMemory()
    start, end = Vec3(1.7, 64.2, -0.5), Vec3(10, 64, 3)

    assert path_key(start, end) == "1,64,-1->10,64,3"
    memory.remember_path(start.key(), end.key(), [start, end], [])
    record = memory.remember_path(start.key(), end.key(), [start, end], [])
    memory.remember_path(end.key(), start.key(), [end, start], [])

    assert record.use_count == 2
    assert set(memory.paths) == {"1,64,-1->10,64,3", "10,64,3->1,64,-1"}
    assert memory.paths["10,64,3->1,64,-1"].use_count == 1


def test_path_cache_evicts_least_recently_used_when_bounded() -> None:
    memory = SpatialMemory(max_paths=2)
    memory.remember_path("a", "b", [], [])
    memory.remember_path("b", "c", [], [])
    memory.remember_path("a", "b", [], [])
    memory.remember_path("c", "d", [], [])

    assert set(memory.paths) == {"a->b", "c->d"}


def test_nearby_landmarks_are_filtered_and_sorted() -> None:
    memory = SpatialMemory()
    memory.add_landmark("tower", Vec3(10, 64, 0), "Cobblestone tower", category="built")
    memory.add_landmark("pond", Vec3(3, 64, 0), "Small pond")
    memory.add_landmark("volcano", Vec3(90, 64, 0), "Far lava peak")

    nearby = memory.get_nearby_landmarks(Vec3(0, 64, 0))

    assert [entry.landmark.name for entry in nearby] == ["pond", "tower"]
    assert nearby[0].distance == 3
    assert memory.landmarks["tower"].category == "built"


def test_update_context_without_scan_has_no_analysis() -> None:
    world = VoxelWorld.flat(size=6)
    memory = SpatialMemory()
    memory.add_landmark("pond", Vec3(3, 64, 0), "Small pond")

    context = memory.update_spatial_context(world)

    assert context.position == Vec3(0, 64, 0)
    assert context.biome == "plains"
    assert context.nearby_blocks["grass_block"] > 0
    assert [entry.landmark.name for entry in context.visible_landmarks] == ["pond"]
    assert context.analysis is None
    assert memory.context is context


def test_update_context_with_scan_derives_analysis() -> None:
    world = VoxelWorld.flat(size=6)
    memory = SpatialMemory()

    context = memory.update_spatial_context(world, _snapshot())

    resources = context.analysis.nearest_resources
    assert [hint.name for hint in resources] == ["stone", "oak_log"]
    assert resources[1].quantity == 2
    assert {path.direction: path.has_obstacles for path in context.analysis.clear_paths} == {
        (1, 0): False,
        (-1, 0): True,
    }
    assert context.analysis.terrain_difficulty == "moderate"


def test_terrain_difficulty_thresholds() -> None:
    assert classify_terrain([]) == "unknown"
    assert classify_terrain([63, 64, 65]) == "easy"
    assert classify_terrain([60, 65]) == "moderate"
    assert classify_terrain([60, 70]) == "difficult"


def test_summarize_context() -> None:
    memory = SpatialMemory()
    assert memory.summarize_context().context_age == "No context available"

    world = VoxelWorld.flat(size=4)
    world.set_block(Vec3(1, 64, 1), "chest")
    memory.add_landmark("pond", Vec3(3, 64, 0), "Small pond")
    memory.update_spatial_context(world)
    summary = memory.summarize_context()

    assert summary.position == "(0, 64, 0)"
    assert summary.nearby_blocks[0] == "grass_block"
    assert "chest" in summary.nearby_blocks
    assert summary.visible_landmarks == ["pond"]
    assert summary.context_age.endswith("s ago")


def test_snapshot_save_and_load(tmp_path: Path) -> None:
    memory = SpatialMemory()
    memory.remember_place("home", Vec3(10, 64, -3), PlaceContext(biome="forest", nearby_blocks={"oak_log": 3}))
    memory.define_region("farm", Vec3(0, 60, 0), Vec3(16, 70, 16), ["wheat"])
    memory.add_sub_location("farm", "home")
    memory.add_landmark("tower", Vec3(10, 64, 0), "Cobblestone tower")
    memory.remember_path("0,64,0", "10,64,-3", [Vec3(0, 64, 0), Vec3(10, 64, -3)], [])

    path = memory.save(tmp_path / "memory" / "snapshot.json")
    assert json.loads(path.read_text(encoding="utf-8"))["paths"]["0,64,0->10,64,-3"]["use_count"] == 1

    restored = SpatialMemory()
    assert restored.load(path) is True
    assert restored.recall_place("home").context.nearby_blocks == {"oak_log": 3}
    assert restored.regions["farm"].sub_locations == ["home"]
    assert restored.regions["farm"].contains(Vec3(5, 64, 5))
    assert restored.landmarks["tower"].description == "Cobblestone tower"
    assert restored.paths["0,64,0->10,64,-3"].waypoints[-1] == Vec3(10, 64, -3)
    assert restored.load(tmp_path / "missing.json") is False


def test_load_json_only_replaces_present_tables() -> None:
    memory = SpatialMemory()
    memory.add_landmark("tower", Vec3(10, 64, 0), "Cobblestone tower")

    memory.load_json({"locations": {"camp": {"position": [1, 64, 1]}}})

    assert memory.recall_place("camp").position == Vec3(1, 64, 1)
    assert "tower" in memory.landmarks


def test_load_json_skips_malformed_entries_and_keeps_tables_consistent() -> None:
    memory = SpatialMemory()
    memory.add_landmark("tower", Vec3(10, 64, 0), "Cobblestone tower")

    memory.load_json(
        {
            "locations": {
                "camp": {"position": [1, 64, 1], "context": {"timestamp": 1700000000000}},
                "broken": {"context": {}},
            },
            "regions": {"farm": {"bounds": {"min": [0, 60, 0]}}},
            "landmarks": {"x": {"description": "no pos"}, "well": {"position": {"x": 2, "y": 64, "z": 2}}},
            "paths": {"a->b": {"waypoints": [[0, 64, 0]], "last_used": "yesterday", "use_count": "many"}},
        }
    )

    assert list(memory.locations) == ["camp"]
    assert memory.locations["camp"].context.timestamp.year == 2023
    assert memory.regions == {}
    assert list(memory.landmarks) == ["well"]
    assert memory.paths["a->b"].use_count == 0


def test_load_rejects_unreadable_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "snapshot.json"
    path.write_text("{not json", encoding="utf-8")
    memory = SpatialMemory()
    memory.remember_place("home", Vec3(0, 64, 0))

    assert memory.load(path) is False
    assert memory.recall_place("home") is not None
