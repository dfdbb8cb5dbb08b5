"""Tile and biome identifiers for the procedural world.

Integer values match the ids used by map clients (0 grass, 1 dirt, 2 water,
3 stone, -1 void) so tile windows can be shipped as plain nested lists.
"""

from __future__ import annotations

from enum import IntEnum


class TileType(IntEnum):
    """Terrain at a single integer coordinate."""

    VOID = -1  # render-only: outside a circular viewport
    GRASS = 0
    DIRT = 1
    WATER = 2
    STONE = 3  # impassable

    @property
    def walkable(self) -> bool:
        return self is not TileType.STONE


class BiomeType(IntEnum):
    """Coarse region classifier biasing the tile distribution."""

    PLAINS = 0
    DESERT = 1
    WATER = 2
    MOUNTAIN = 3


TILE_SYMBOLS: dict[TileType, str] = {
    TileType.VOID: "  ",
    TileType.GRASS: ". ",
    TileType.DIRT: ": ",
    TileType.WATER: "~ ",
    TileType.STONE: "██",
}
