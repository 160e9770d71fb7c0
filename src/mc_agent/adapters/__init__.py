"""World adapters for live game integrations (e.g., minescript)."""

from .live_minecraft import MinescriptUnavailableError, MinescriptWorldQuery, normalize_block_name

__all__ = [
    "MinescriptUnavailableError",
    "MinescriptWorldQuery",
    "normalize_block_name",
]
