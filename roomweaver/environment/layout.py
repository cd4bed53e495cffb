"""Seeded tile layout generation.

Every room is a fixed-size tile grid crossed by one meandering corridor that
enters on the left edge and leaves on the right edge at the same row, so rooms
chain together seamlessly. All randomness comes from a ``SeededSequence``
built from the room seed: the same (story seed, room number, biome, config)
always yields an identical ``Layout``.

Path carving rules:

- Moves are 4-connected and never go left, so ``x`` is non-decreasing.
- Vertical moves inside one column keep a single direction, which together
  with the previous rule means a tile is never visited twice.
- While the path is shorter than ``min_path_length`` (counting the distance
  still needed to reach the exit) it wanders vertically. Wandering is forced
  once the remaining columns could no longer absorb the deficit; at the
  top/bottom boundary the path steps forward and the next column heads
  toward the far boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from roomweaver.logging_utils import log_deterministic
from roomweaver.schemas import BiomeDefinition, Layout, Position, Tile, TileTag
from roomweaver.sequence import SeededSequence, room_seed

Coord = Tuple[int, int]  # (col, row)

DEFAULT_WIDTH = 25
DEFAULT_HEIGHT = 20
DEFAULT_TILE_SIZE = 40
DEFAULT_MIN_PATH_LENGTH = 40
DETOUR_CHANCE = 0.2
# Chance that an obstacle roll next to the corridor is kept
EDGE_OBSTACLE_KEEP = 0.3


@dataclass(frozen=True)
class LayoutConfig:
    """Grid geometry shared by every room of a story.

    Defaults give a 1000 x 800 px viewport.
    """

    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    tile_size: int = DEFAULT_TILE_SIZE
    min_path_length: int = DEFAULT_MIN_PATH_LENGTH
    detour_chance: float = DETOUR_CHANCE

    @property
    def pixel_width(self) -> int:
        return self.width * self.tile_size

    @property
    def pixel_height(self) -> int:
        return self.height * self.tile_size

    def validate(self) -> None:
        """Raise ``ValueError`` when no valid path can be carved on this grid."""
        if self.width < 2 or self.height < 1:
            raise ValueError(f"Layout grid must be at least 2x1 tiles, got {self.width}x{self.height}")
        if self.tile_size <= 0:
            raise ValueError(f"tile_size must be positive, got {self.tile_size}")
        if not 0.0 <= self.detour_chance <= 1.0:
            raise ValueError(f"detour_chance must be within [0, 1], got {self.detour_chance}")
        longest = max_path_length(self.width, self.height)
        if self.min_path_length > longest:
            raise ValueError(
                f"min_path_length={self.min_path_length} cannot fit a {self.width}x{self.height} grid "
                f"(guaranteed maximum is {longest} tiles). Lower it or enlarge the grid."
            )


def _column_yield(height: int) -> int:
    """Deficit a single fresh column is guaranteed to absorb by wandering."""
    return 2 * ((height - 1) // 2)


def max_path_length(width: int, height: int) -> int:
    """Longest minimum length the carver guarantees for a grid."""
    return width + _column_yield(height) * max(0, width - 2)


def carve_path(
    width: int,
    height: int,
    rng: SeededSequence,
    *,
    min_length: int = DEFAULT_MIN_PATH_LENGTH,
    meander: float = 0.5,
    detour_chance: float = DETOUR_CHANCE,
) -> List[Coord]:
    """Carve the corridor centre line from ``(0, height // 2)`` to ``(width - 1, height // 2)``.

    Returns tile coordinates in traversal order, entrance first.
    """

    mid = height // 2
    end_x = width - 1
    col_yield = _column_yield(height)

    x, y = 0, mid
    path: List[Coord] = [(x, y)]
    # Direction of the last vertical step in the current column (0 = none yet)
    last_vertical = 0

    def can_step_vertically(direction: int) -> bool:
        ny = y + direction
        return 0 <= ny < height and last_vertical in (0, direction)

    def step_right() -> None:
        nonlocal x, last_vertical
        x += 1
        last_vertical = 0
        path.append((x, y))

    def step_vertically(direction: int) -> None:
        nonlocal y, last_vertical
        y += direction
        last_vertical = direction
        path.append((x, y))

    def far_boundary_direction() -> int:
        if 2 * y < height - 1:
            return 1
        if 2 * y > height - 1:
            return -1
        return 1 if rng.random() < 0.5 else -1

    while (x, y) != (end_x, mid):
        remaining = (end_x - x) + abs(mid - y)
        deficit = min_length - (len(path) + remaining)

        if deficit > 0 and x < end_x:
            # Guaranteed absorption of the untouched columns x+1 .. width-2
            forced = deficit > col_yield * max(0, width - 2 - x)
            if forced or rng.random() < meander:
                direction = last_vertical or far_boundary_direction()
                if can_step_vertically(direction):
                    step_vertically(direction)
                else:
                    step_right()
                continue

        dx = end_x - x
        dy = mid - y
        move_x = abs(dx) > abs(dy) or rng.random() > meander
        toward = (dy > 0) - (dy < 0)

        if move_x and dx != 0:
            step_right()
        elif dy != 0 and can_step_vertically(toward):
            step_vertically(toward)
        else:
            step_right()

        # Occasional detour for a less mechanical corridor; none while the
        # untouched columns are still needed to reach the minimum length
        remaining = (end_x - x) + abs(mid - y)
        if min_length - (len(path) + remaining) > 0:
            continue
        if (x, y) != (end_x, mid) and x < end_x and len(path) > 3 and rng.random() < detour_chance:
            if rng.random() < 0.5:
                direction = 1 if rng.random() < 0.5 else -1
                if can_step_vertically(direction):
                    step_vertically(direction)
            else:
                step_right()

    return path


def widen_path(path: List[Coord], width: int, height: int, rng: SeededSequence) -> Set[Coord]:
    """Corridor tiles: every path tile plus a square of random radius 1-2 around it."""
    corridor: Set[Coord] = set()
    for px, py in path:
        radius = rng.randint(1, 2)
        for cx in range(max(0, px - radius), min(width, px + radius + 1)):
            for cy in range(max(0, py - radius), min(height, py + radius + 1)):
                corridor.add((cx, cy))
    return corridor


def _decorate(
    config: LayoutConfig,
    biome: BiomeDefinition,
    corridor: Set[Coord],
    rng: SeededSequence,
) -> List[List[Tile]]:
    path_tile = Tile(walkable=True, biome_tag=TileTag.PATH, terrain=biome.path_tile)
    ground_tile = Tile(walkable=False, biome_tag=TileTag.GROUND, terrain=biome.base_tile)
    obstacle_tiles: Dict[str, Tile] = {
        name: Tile(walkable=False, biome_tag=TileTag.OBSTACLE, terrain=name)
        for name in biome.obstacle_tiles
    }
    wall_name = next((name for name in biome.obstacle_tiles if "wall" in name), biome.obstacle_tiles[0])
    wall_tile = Tile(walkable=False, biome_tag=TileTag.WALL, terrain=wall_name)

    tiles: List[List[Tile]] = []
    for row in range(config.height):
        tile_row: List[Tile] = []
        for col in range(config.width):
            if (col, row) in corridor:
                tile_row.append(path_tile)
                continue

            on_border = row in (0, config.height - 1) or col in (0, config.width - 1)
            if biome.has_walls and on_border:
                tile_row.append(wall_tile)
                continue

            tile = ground_tile
            if rng.random() < biome.obstacle_density:
                next_to_corridor = any(
                    neighbor in corridor
                    for neighbor in ((col - 1, row), (col + 1, row), (col, row - 1), (col, row + 1))
                )
                if not next_to_corridor or rng.random() < EDGE_OBSTACLE_KEEP:
                    tile = obstacle_tiles[rng.choice(biome.obstacle_tiles)]
            tile_row.append(tile)
        tiles.append(tile_row)
    return tiles


def generate_layout(
    room_id: str,
    story_seed: int,
    room_number: int,
    biome: BiomeDefinition,
    *,
    config: LayoutConfig | None = None,
) -> Layout:
    """Generate the deterministic tile layout for one room.

    Args:
        room_id: Identifier used for diagnostics only; it does not affect output
        story_seed: Seed shared by every room of the story
        room_number: Position of the room in the story (0-based)
        biome: Terrain theme driving tile names, meander and obstacle density
        config: Grid geometry; defaults to 25x20 tiles of 40 px

    Returns:
        Frozen ``Layout`` whose ``spawn_point`` is the first path point

    Raises:
        ValueError: The configuration cannot fit a path of the minimum length
    """

    config = config or LayoutConfig()
    config.validate()

    seed = room_seed(story_seed, room_number)
    rng = SeededSequence(seed)

    path = carve_path(
        config.width,
        config.height,
        rng,
        min_length=config.min_path_length,
        meander=biome.path_meander,
        detour_chance=config.detour_chance,
    )
    corridor = widen_path(path, config.width, config.height, rng)
    tiles = _decorate(config, biome, corridor, rng)

    half = config.tile_size / 2
    path_points = [
        Position(x=col * config.tile_size + half, y=row * config.tile_size + half)
        for col, row in path
    ]

    log_deterministic(
        f"Layout {room_id}: seed={seed} biome={biome.name} path={len(path)} tiles "
        f"corridor={len(corridor)} tiles"
    )

    return Layout(
        width=config.width,
        height=config.height,
        tile_size=config.tile_size,
        tiles=tiles,
        path_points=path_points,
        spawn_point=path_points[0],
        biome=biome,
    )


__all__ = [
    "LayoutConfig",
    "carve_path",
    "generate_layout",
    "max_path_length",
    "widen_path",
]
