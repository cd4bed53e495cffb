"""Deterministic room geometry: biomes, layouts, placement and layout queries."""

from .biomes import (
    BUILTIN_BIOMES,
    BiomeGenerationError,
    BiomeLibrary,
    biome_for_room_number,
    normalize_biome_key,
)
from .layout import LayoutConfig, carve_path, generate_layout, max_path_length
from .placement import (
    PlacementEngine,
    classify_room,
    enemy_level,
    extract_story_terms,
    room_description,
    story_aligned_items,
)
from .helpers import (
    exit_reachable,
    grid_shortest_path,
    is_position_walkable,
    path_is_connected,
    render_ascii_window,
)

__all__ = [
    "BUILTIN_BIOMES",
    "BiomeGenerationError",
    "BiomeLibrary",
    "biome_for_room_number",
    "normalize_biome_key",
    "LayoutConfig",
    "carve_path",
    "generate_layout",
    "max_path_length",
    "PlacementEngine",
    "classify_room",
    "enemy_level",
    "extract_story_terms",
    "room_description",
    "story_aligned_items",
    "exit_reachable",
    "grid_shortest_path",
    "is_position_walkable",
    "path_is_connected",
    "render_ascii_window",
]
