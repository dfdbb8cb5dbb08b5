"""Procedural terrain for Tileverse worlds."""

from .tiles import BiomeType, TileType, TILE_SYMBOLS
from .generator import (
    BIOME_SIZE,
    ROAD_SPACING,
    biome_at,
    coordinate_hash,
    is_road,
    tile_at,
    walkable,
)
from .helpers import (
    circular_window_at,
    euclidean_distance,
    manhattan_distance,
    render_ascii_window,
    visible_agents,
    window_at,
    window_origin,
)

__all__ = [
    "BiomeType",
    "TileType",
    "TILE_SYMBOLS",
    "BIOME_SIZE",
    "ROAD_SPACING",
    "biome_at",
    "coordinate_hash",
    "is_road",
    "tile_at",
    "walkable",
    "circular_window_at",
    "euclidean_distance",
    "manhattan_distance",
    "render_ascii_window",
    "visible_agents",
    "window_at",
    "window_origin",
]
