"""World handle contracts and the in-memory demo world."""

from .grid import GridPathfinder, VoxelWorld
from .interfaces import Pathfinder, WorldQuery

__all__ = ["GridPathfinder", "Pathfinder", "VoxelWorld", "WorldQuery"]
