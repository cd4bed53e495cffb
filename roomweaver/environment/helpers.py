"""Queries over generated layouts: walkability, connectivity and ASCII views."""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from roomweaver.schemas import Layout, Position, TileTag

Coord = Tuple[int, int]  # (col, row)


def is_position_walkable(layout: Layout, x: float, y: float) -> bool:
    """True when pixel ``(x, y)`` falls on a walkable tile inside the grid."""
    tile = layout.tile_for_position(Position(x=x, y=y))
    return tile is not None and tile.walkable


def position_to_tile(layout: Layout, position: Position) -> Coord:
    return int(position.x // layout.tile_size), int(position.y // layout.tile_size)


def path_tiles(layout: Layout) -> List[Coord]:
    """Path points converted back to tile coordinates, in traversal order."""
    return [position_to_tile(layout, point) for point in layout.path_points]


def path_is_connected(layout: Layout) -> bool:
    """Check the path invariants a renderer and the placement engine rely on.

    The path must be non-empty, 4-connected step to step, never revisit a
    tile, and only cross walkable tiles.
    """

    tiles = path_tiles(layout)
    if not tiles:
        return False
    seen: Set[Coord] = set()
    previous: Optional[Coord] = None
    for coord in tiles:
        if coord in seen:
            return False
        seen.add(coord)
        tile = layout.tile_at(*coord)
        if tile is None or not tile.walkable:
            return False
        if previous is not None:
            # Exactly one axis changes by exactly one tile
            if abs(coord[0] - previous[0]) + abs(coord[1] - previous[1]) != 1:
                return False
        previous = coord
    return True


def grid_shortest_path(layout: Layout, start: Coord, goal: Coord) -> Optional[List[Coord]]:
    """Return a path of ``(col, row)`` coordinates over walkable tiles using BFS.

    Returns None if the goal is unreachable. Path includes start and goal.
    """

    if start == goal:
        return [start]

    directions = [(1, 0), (-1, 0), (0, 1), (0, -1)]
    visited = {start}
    queue: deque[Tuple[Coord, List[Coord]]] = deque([(start, [start])])

    def neighbors(coord: Coord) -> Iterable[Coord]:
        col, row = coord
        for dc, dr in directions:
            tile = layout.tile_at(col + dc, row + dr)
            if tile is not None and tile.walkable:
                yield col + dc, row + dr

    while queue:
        coord, path = queue.popleft()
        for nb in neighbors(coord):
            if nb in visited:
                continue
            visited.add(nb)
            new_path = path + [nb]
            if nb == goal:
                return new_path
            queue.append((nb, new_path))
    return None


def exit_reachable(layout: Layout) -> bool:
    """True when the exit tile can be reached from the spawn tile over walkable ground."""
    start = position_to_tile(layout, layout.spawn_point)
    goal = position_to_tile(layout, layout.exit_point)
    return grid_shortest_path(layout, start, goal) is not None


_DEFAULT_TILE_SYMBOLS: Dict[TileTag, str] = {
    TileTag.PATH: "  ",
    TileTag.GROUND: "..",
    TileTag.OBSTACLE: "##",
    TileTag.WALL: "██",
}


def render_ascii_window(
    layout: Layout,
    center: Coord | None = None,
    *,
    radius: int | None = None,
    symbols: Optional[Dict[TileTag, str]] = None,
    mark_path: bool = True,
) -> str:
    """Render the layout (or a window of it) as text.

    This is the tile-based fallback view used when a room has no scene art.
    Path tiles are drawn as ``<>`` when ``mark_path`` is set; the spawn tile is
    ``S`` and the exit tile ``E``. Without ``center``/``radius`` the whole grid
    is rendered, top row first.
    """

    mapping = {**_DEFAULT_TILE_SYMBOLS}
    if symbols:
        mapping.update(symbols)

    if center is None or radius is None:
        min_col, max_col = 0, layout.width - 1
        min_row, max_row = 0, layout.height - 1
    else:
        radius = max(int(radius), 0)
        ccol, crow = center
        min_col = max(0, ccol - radius)
        max_col = min(layout.width - 1, ccol + radius)
        min_row = max(0, crow - radius)
        max_row = min(layout.height - 1, crow + radius)

    on_path = set(path_tiles(layout)) if mark_path else set()
    spawn = position_to_tile(layout, layout.spawn_point)
    exit_tile = position_to_tile(layout, layout.exit_point)

    lines: List[str] = []
    for row in range(min_row, max_row + 1):
        row_chars: List[str] = []
        for col in range(min_col, max_col + 1):
            if (col, row) == spawn:
                row_chars.append("S ")
            elif (col, row) == exit_tile:
                row_chars.append("E ")
            elif (col, row) in on_path:
                row_chars.append("<>")
            else:
                row_chars.append(mapping.get(layout.tiles[row][col].biome_tag, "??"))
        lines.append("".join(row_chars))

    return "\n".join(lines)


__all__ = [
    "exit_reachable",
    "grid_shortest_path",
    "is_position_walkable",
    "path_is_connected",
    "path_tiles",
    "position_to_tile",
    "render_ascii_window",
]
