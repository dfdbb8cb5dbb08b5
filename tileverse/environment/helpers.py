"""Viewport and distance utilities built on the procedural generator."""

from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .generator import tile_at
from .tiles import TILE_SYMBOLS, TileType

TileSource = Callable[[int, int], TileType]
Coordinate = Tuple[int, int]


def euclidean_distance(a: Coordinate, b: Coordinate) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def manhattan_distance(a: Coordinate, b: Coordinate) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])


def window_origin(center: Coordinate, width: int, height: int) -> Coordinate:
    """World coordinate of the top-left cell of a ``width`` x ``height`` window."""
    return center[0] - width // 2, center[1] - height // 2


def window_at(
    center_x: int,
    center_y: int,
    width: int,
    height: int,
    *,
    source: TileSource = tile_at,
) -> List[List[TileType]]:
    """Materialize a rectangular viewport of tiles, rows first (``grid[row][col]``)."""
    min_x, min_y = window_origin((center_x, center_y), width, height)
    return [
        [source(min_x + col, min_y + row) for col in range(width)]
        for row in range(height)
    ]


def circular_window_at(
    center_x: int,
    center_y: int,
    radius: float,
    width: int,
    height: int,
    *,
    source: TileSource = tile_at,
) -> List[List[TileType]]:
    """Like ``window_at`` but cells farther than ``radius`` from center are VOID.

    VOID cells never hit the generator.
    """
    min_x, min_y = window_origin((center_x, center_y), width, height)
    grid: List[List[TileType]] = []
    for row in range(height):
        world_y = min_y + row
        cells: List[TileType] = []
        for col in range(width):
            world_x = min_x + col
            if euclidean_distance((world_x, world_y), (center_x, center_y)) > radius:
                cells.append(TileType.VOID)
            else:
                cells.append(source(world_x, world_y))
        grid.append(cells)
    return grid


def render_ascii_window(
    grid: List[List[TileType]],
    *,
    markers: Optional[Dict[Coordinate, str]] = None,
    symbols: Optional[Dict[TileType, str]] = None,
) -> str:
    """Render a materialized window as text.

    ``markers`` maps (col, row) window cells to a two-character overlay
    (e.g. ``"@ "`` for the player, ``"A "`` for an agent).
    """
    mapping = {**TILE_SYMBOLS}
    if symbols:
        mapping.update(symbols)
    overlay = markers or {}

    lines: List[str] = []
    for row, cells in enumerate(grid):
        chars = [overlay.get((col, row), mapping.get(tile, "??")) for col, tile in enumerate(cells)]
        lines.append("".join(chars))
    return "\n".join(lines)


def visible_agents(
    agents: Iterable[Tuple[str, Coordinate]],
    center: Coordinate,
    *,
    radius: float,
    width: int,
    height: int,
) -> Dict[str, Coordinate]:
    """Project agents inside the circular view onto window (screen) coordinates.

    Args:
        agents: (agent_id, world position) pairs
        center: player world position
        radius: circular view radius
        width, height: window size used to compute the screen origin

    Returns:
        Map of agent_id -> (screen_x, screen_y) for agents within ``radius``
    """
    min_x, min_y = window_origin(center, width, height)
    projected: Dict[str, Coordinate] = {}
    for agent_id, (x, y) in agents:
        if euclidean_distance((x, y), center) <= radius:
            projected[agent_id] = (x - min_x, y - min_y)
    return projected
