"""CLI startup entrypoint for MC Agent."""

from __future__ import annotations

import asyncio
from dataclasses import asdict
from pathlib import Path

import typer
from rich import print

from mc_agent.adapters import MinescriptUnavailableError, MinescriptWorldQuery
from mc_agent.agent import SpatialAgent
from mc_agent.config import settings
from mc_agent.goals import GoalTracker
from mc_agent.memory import SpatialMemory
from mc_agent.models import Vec3
from mc_agent.navigator import NavigationError, NavigationOptions
from mc_agent.scanner import SpatialScanner
from mc_agent.telemetry import configure_logging
from mc_agent.world import GridPathfinder, VoxelWorld

app = typer.Typer(help="MC Agent spatial awareness and navigation entrypoint")


def _build_demo_world() -> VoxelWorld:
    """Flat meadow with a tree, a small hill, a stone wall and a storage corner."""
    world = VoxelWorld.flat(size=40, ground_y=63)
    world.fill(Vec3(6, 64, 6), Vec3(6, 67, 6), "oak_log")
    world.fill(Vec3(5, 68, 5), Vec3(7, 69, 7), "oak_leaves")
    world.fill(Vec3(-12, 64, -12), Vec3(-8, 65, -8), "dirt")
    world.fill(Vec3(-10, 66, -10), Vec3(-9, 66, -9), "grass_block")
    world.fill(Vec3(10, 64, -6), Vec3(10, 66, 2), "stone")
    world.set_block(Vec3(-3, 64, 4), "chest")
    world.set_block(Vec3(-4, 64, 4), "crafting_table")
    world.set_block(Vec3(0, 63, 0), "bedrock")
    return world


def _build_world():
    if settings.minecraft_adapter.lower() == "minescript":
        try:
            return MinescriptWorldQuery()
        except MinescriptUnavailableError as exc:
            print({"warning": str(exc), "fallback": "demo"})
    return _build_demo_world()


def _load_memory(memory_file: str | None) -> SpatialMemory:
    memory = SpatialMemory()
    path = memory_file or settings.memory_snapshot_path
    if path:
        memory.load(path)
    return memory


@app.callback()
def main(log_level: str = typer.Option(None, help="Override MC_AGENT_LOG_LEVEL")) -> None:
    configure_logging(log_level or settings.log_level)


@app.command()
def start() -> None:
    """Show runtime configuration."""
    print(
        {
            "app_name": settings.app_name,
            "minecraft_adapter": settings.minecraft_adapter,
            "scan_radius": settings.scan_radius,
            "checkpoint_interval": settings.checkpoint_interval,
            "stuck_threshold_ms": settings.stuck_threshold_ms,
            "memory_snapshot_path": settings.memory_snapshot_path,
        }
    )


@app.command()
def scan(
    radius: int = typer.Option(None, help="Scan radius in blocks"),
    top: int = typer.Option(10, help="How many block types to list"),
) -> None:
    """Scan the surroundings and print a ranked summary."""
    world = _build_world()
    scanner = SpatialScanner(world, scan_radius=radius)
    snapshot = scanner.scan()
    summary = scanner.get_summary()
    memory = SpatialMemory()
    context = memory.update_spatial_context(world, snapshot)
    print(
        {
            "position": summary.position.key(),
            "nearby_blocks": [asdict(entry) for entry in summary.nearby_blocks[:top]],
            "accessible_resources": [asdict(entry) for entry in summary.accessible_resources[:top]],
            "clear_paths": summary.clear_path_count,
            "terrain_difficulty": context.analysis.terrain_difficulty if context.analysis else "unknown",
        }
    )


@app.command()
def navigate(
    x: float = typer.Option(..., help="Target X"),
    y: float = typer.Option(64, help="Target Y"),
    z: float = typer.Option(..., help="Target Z"),
    checkpoint_interval: int = typer.Option(None, help="Waypoints per checkpoint"),
    memory_file: str = typer.Option(None, help="Memory snapshot to load and update"),
) -> None:
    """Navigate through the demo world and record the path outcome."""
    world = _build_demo_world()
    memory = _load_memory(memory_file)
    agent = SpatialAgent(world, GridPathfinder(world), memory=memory)
    options = NavigationOptions(checkpoint_interval=checkpoint_interval, update_interval_ms=50)

    try:
        asyncio.run(agent.navigator.move_to_location(Vec3(x, y, z), options))
    except NavigationError as exc:
        print({"navigation": "failed", "error": str(exc), "history": agent.navigator.history})
        raise typer.Exit(code=1)

    path = memory_file or settings.memory_snapshot_path
    if path:
        memory.save(path)
    print(
        {
            "navigation": agent.navigator.last_outcome.value,
            "position": world.position().key(),
            "known_paths": memory.get_known_paths(),
            "context": memory.summarize_context(),
        }
    )


@app.command("goals-demo")
def goals_demo() -> None:
    """Walk the goal tracker through a gather-and-build scenario."""
    tracker = GoalTracker()
    tracker.set_main_goal("Build a shelter")
    wood = tracker.add_sub_goal("Collect oak logs")
    table = tracker.add_sub_goal("Place crafting table", prerequisites=[wood])
    walls = tracker.add_sub_goal("Raise walls", dependencies=[table])

    print({"can_start_walls": tracker.can_start_goal(walls)})
    tracker.update_goal_progress(wood, 40)
    tracker.update_goal_progress(table, 60)
    tracker.complete_goal(wood)
    for attempt in range(tracker.max_attempts + 1):
        tracker.record_failed_attempt(walls, f"Missing planks (attempt {attempt + 1})")
    print(tracker.get_goal_summary())


@app.command("memory-show")
def memory_show(memory_file: str = typer.Argument(..., help="Path to a memory snapshot")) -> None:
    """Print a saved spatial memory snapshot."""
    path = Path(memory_file)
    if not path.exists():
        print({"error": f"Memory snapshot not found: {path}"})
        raise typer.Exit(code=1)

    memory = SpatialMemory()
    memory.load(path)
    print(
        {
            "locations": sorted(memory.locations),
            "regions": sorted(memory.regions),
            "landmarks": sorted(memory.landmarks),
            "known_paths": memory.get_known_paths(),
        }
    )


if __name__ == "__main__":
    app()
