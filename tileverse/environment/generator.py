"""Deterministic, seed-free procedural terrain.

Every coordinate maps to a tile through a sinusoidal hash of the coordinate
itself, so the world is infinite, needs no storage and gives the same answer
to every caller (client, server, concurrent ticks) without coordination.

Generation steps for ``tile_at(x, y)``:
1. Fine hash of ``(x, y)`` in ``[0, 1)``.
2. Biome from a second hash of the 20x20 block containing the coordinate.
3. Road overlay: on every 15th row/column the tile is dirt 70% of the time.
4. Otherwise the biome's distribution table maps the fine hash to a tile.
"""

from __future__ import annotations

import math
from functools import lru_cache

from .tiles import BiomeType, TileType

BIOME_SIZE = 20
ROAD_SPACING = 15
ROAD_DIRT_CHANCE = 0.7

# Cumulative thresholds over the biome hash; anything above the last one is plains.
BIOME_THRESHOLDS: tuple[tuple[float, BiomeType], ...] = (
    (0.3, BiomeType.DESERT),
    (0.5, BiomeType.WATER),
    (0.7, BiomeType.MOUNTAIN),
)

# Per-biome bands: (upper bound, tile) checked in order, then the trailing default.
# Stone is never produced by the stock tables so agents and players roam freely;
# it stays a valid tile for walkability checks and custom generators.
BIOME_TILE_TABLES: dict[BiomeType, tuple[tuple[tuple[float, TileType], ...], TileType]] = {
    BiomeType.DESERT: (((0.4, TileType.DIRT),), TileType.GRASS),
    BiomeType.WATER: (((0.6, TileType.WATER), (0.8, TileType.GRASS)), TileType.DIRT),
    BiomeType.MOUNTAIN: (((0.7, TileType.DIRT),), TileType.GRASS),
    BiomeType.PLAINS: (((0.15, TileType.DIRT), (0.25, TileType.WATER)), TileType.GRASS),
}


def _sin_hash(seed: float, multiplier: float, scale: float) -> float:
    return abs(math.sin(seed * multiplier) * scale) % 1


def coordinate_hash(x: int, y: int) -> float:
    """Pseudo-random value in ``[0, 1)`` derived only from ``(x, y)``."""
    return _sin_hash(x * 1000 + y, 12.9898, 43758.5453)


def biome_at(x: int, y: int) -> BiomeType:
    """Return the biome of the block containing ``(x, y)``."""
    block_x = x // BIOME_SIZE
    block_y = y // BIOME_SIZE
    value = _sin_hash(block_x * 100 + block_y, 7.1234, 23456.7891)
    for threshold, biome in BIOME_THRESHOLDS:
        if value < threshold:
            return biome
    return BiomeType.PLAINS


def is_road(x: int, y: int) -> bool:
    return x % ROAD_SPACING == 0 or y % ROAD_SPACING == 0


@lru_cache(maxsize=65536)
def tile_at(x: int, y: int) -> TileType:
    """Return the terrain tile at integer world coordinates ``(x, y)``.

    Pure function: the cache only memoizes, it never changes an answer.
    """
    value = coordinate_hash(x, y)

    if is_road(x, y) and value < ROAD_DIRT_CHANCE:
        return TileType.DIRT

    bands, default = BIOME_TILE_TABLES[biome_at(x, y)]
    for threshold, tile in bands:
        if value < threshold:
            return tile
    return default


def walkable(x: int, y: int) -> bool:
    """Agents and players may stand on every tile except stone."""
    return tile_at(x, y).walkable
