"""
Roomweaver - procedural rooms and batched panorama art for exploration games.

Deterministic, seed-reproducible room layouts and inhabitants, plus a
panorama pipeline that renders 1-3 adjacent rooms in one image request and
slices it back into per-room scenes. Generated assets are cached by content.

No global state. The image provider, caches and language model are injected.
"""

__version__ = "0.1.0"

# Main generation components
from .orchestrator import RoomOrchestrator
from .rooms import build_room_base
from .sequence import SeededSequence, room_seed

# Environment
from .environment import (
    BUILTIN_BIOMES,
    BiomeGenerationError,
    BiomeLibrary,
    LayoutConfig,
    PlacementEngine,
    generate_layout,
    render_ascii_window,
)

# Panorama pipeline
from .panorama import (
    PanoramaCompositor,
    PanoramaGenerationError,
    PanoramaSliceError,
    slice_panorama,
)

# Providers and caching
from .image_provider import HttpImageGenerator, ImageGenerator, ImageProviderError, ImageRequest, ImageResult
from .cache import AssetCache, CacheStore, InMemoryCacheStore, JsonFileCacheStore
from .sprites import SpriteService
from .speech import SpeechService, SpeechSynthesizer

# Core schemas
from .schemas import (
    BiomeDefinition,
    Entity,
    EntityKind,
    GenerationEvent,
    Layout,
    MultiRoomConfig,
    PlacementResult,
    Position,
    Room,
    RoomBase,
    RoomType,
    Tile,
    TileTag,
)

__all__ = [
    "__version__",
    "RoomOrchestrator",
    "build_room_base",
    "SeededSequence",
    "room_seed",
    "BUILTIN_BIOMES",
    "BiomeGenerationError",
    "BiomeLibrary",
    "LayoutConfig",
    "PlacementEngine",
    "generate_layout",
    "render_ascii_window",
    "PanoramaCompositor",
    "PanoramaGenerationError",
    "PanoramaSliceError",
    "slice_panorama",
    "HttpImageGenerator",
    "ImageGenerator",
    "ImageProviderError",
    "ImageRequest",
    "ImageResult",
    "AssetCache",
    "CacheStore",
    "InMemoryCacheStore",
    "JsonFileCacheStore",
    "SpriteService",
    "SpeechService",
    "SpeechSynthesizer",
    "BiomeDefinition",
    "Entity",
    "EntityKind",
    "GenerationEvent",
    "Layout",
    "MultiRoomConfig",
    "PlacementResult",
    "Position",
    "Room",
    "RoomBase",
    "RoomType",
    "Tile",
    "TileTag",
]
