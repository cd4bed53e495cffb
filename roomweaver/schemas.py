"""
Pydantic schemas for the roomweaver generation pipeline.

All data structures passed between the layout generator, placement engine,
panorama pipeline and asset cache are defined here.

Design Philosophy:
- Generated geometry (tiles, layouts, positions) is frozen once built
- Rooms are plain models so callers can serialize them for save games
- Transient request/result objects are models too, which keeps logging and
  event payloads JSON-friendly
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Geometry & Biomes
# ============================================================================


class Position(BaseModel):
    """Pixel-space coordinate inside a room viewport."""

    model_config = ConfigDict(frozen=True)

    x: float
    y: float

    def distance_to(self, other: "Position") -> float:
        return ((self.x - other.x) ** 2 + (self.y - other.y) ** 2) ** 0.5


class BiomeColors(BaseModel):
    """Fallback palette used when a room renders from its tile grid."""

    base: str = Field("#4ade80", description="Colour of non-walkable ground")
    path: str = Field("#92400e", description="Colour of the walkable corridor")
    obstacles: List[str] = Field(default_factory=lambda: ["#22c55e"])


class BiomeDefinition(BaseModel):
    """Named terrain/theme descriptor applied to layout and prompt generation.

    The tile names are free-form so LLM-generated biomes can introduce their
    own terrain. ``path_meander`` and ``obstacle_density`` are the terrain
    weighting used by the layout generator: a higher meander produces more
    vertical wandering, a higher density decorates more of the ground with
    obstacles.
    """

    name: str
    base_tile: str = "grass"
    path_tile: str = "dirt"
    obstacle_tiles: List[str] = Field(default_factory=lambda: ["tree"])
    colors: BiomeColors = Field(default_factory=BiomeColors)
    atmosphere: str = ""
    path_meander: float = Field(0.5, ge=0.0, le=1.0)
    obstacle_density: float = Field(0.2, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _require_obstacles(self) -> "BiomeDefinition":
        if not self.obstacle_tiles:
            raise ValueError(f"Biome '{self.name}' must define at least one obstacle tile")
        return self

    @property
    def has_walls(self) -> bool:
        return any("wall" in tile for tile in self.obstacle_tiles)


class TileTag(str, Enum):
    """Role a tile plays in the layout."""

    PATH = "path"
    GROUND = "ground"
    OBSTACLE = "obstacle"
    WALL = "wall"


class Tile(BaseModel):
    """A single grid cell. Immutable once generated."""

    model_config = ConfigDict(frozen=True)

    walkable: bool
    biome_tag: TileTag
    terrain: str = Field(..., description="Biome tile name (dirt, tree, wall, ...)")


class Layout(BaseModel):
    """Walkable tile grid plus the path polyline through it (a.k.a. TileMap).

    ``tiles`` is row-major: ``tiles[row][col]``. ``path_points`` are pixel
    coordinates of tile centres in traversal order (entrance first).
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0, description="Width in tiles")
    height: int = Field(..., gt=0, description="Height in tiles")
    tile_size: int = Field(..., gt=0, description="Tile edge length in pixels")
    tiles: List[List[Tile]]
    path_points: List[Position] = Field(..., min_length=1)
    spawn_point: Position
    biome: BiomeDefinition

    @property
    def pixel_width(self) -> int:
        return self.width * self.tile_size

    @property
    def pixel_height(self) -> int:
        return self.height * self.tile_size

    @property
    def exit_point(self) -> Position:
        return self.path_points[-1]

    def tile_at(self, col: int, row: int) -> Optional[Tile]:
        if 0 <= col < self.width and 0 <= row < self.height:
            return self.tiles[row][col]
        return None

    def tile_for_position(self, position: Position) -> Optional[Tile]:
        return self.tile_at(
            int(position.x // self.tile_size), int(position.y // self.tile_size)
        )


# ============================================================================
# Entities & Rooms
# ============================================================================


class EntityKind(str, Enum):
    NPC = "npc"
    ENEMY = "enemy"
    ITEM = "item"
    EXIT = "exit"
    ENTRANCE = "entrance"


class RoomType(str, Enum):
    COMBAT = "combat"
    PEACEFUL = "peaceful"
    TREASURE = "treasure"
    PUZZLE = "puzzle"
    MIXED = "mixed"


class ItemEffect(BaseModel):
    type: Literal["heal", "mana", "damage_boost", "defense_boost"]
    value: int


class Item(BaseModel):
    """Loot carried by enemies or found on the path."""

    id: str
    name: str
    type: Literal["consumable", "equipment", "key_item"]
    sprite: str
    description: str
    effect: Optional[ItemEffect] = None


class Entity(BaseModel):
    """Interactive object placed in a room (GameObject).

    Positions never change after placement. ``has_interacted`` is the only
    field the (external) interaction/combat layer mutates.
    """

    id: str
    position: Position
    kind: EntityKind
    sprite_ref: str
    interaction_text: str
    has_interacted: bool = False
    level: Optional[int] = Field(None, ge=1)
    item_drop: Optional[Item] = None


class PlacementResult(BaseModel):
    """Outcome of best-effort placement: what was seated vs. what was asked for."""

    placed: List[Entity] = Field(default_factory=list)
    requested: int = 0

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - len(self.placed))


class RoomBase(BaseModel):
    """A room's layout and entities before any art has been attached."""

    id: str
    room_number: int = Field(..., ge=0)
    room_type: RoomType
    description: str
    layout: Layout
    objects: List[Entity] = Field(default_factory=list)


class Room(RoomBase):
    """A fully formed room handed to the game state owner.

    ``scene_image`` stays ``None`` when art generation failed; the presentation
    layer then renders ``layout`` directly.
    """

    scene_image: Optional[str] = None
    scene_image_loading: bool = False
    visited: bool = False
    exit_direction: Optional[Literal["right", "left", "up", "down"]] = "right"

    @classmethod
    def from_base(cls, base: RoomBase, scene_image: Optional[str] = None) -> "Room":
        return cls(**base.model_dump(), scene_image=scene_image, scene_image_loading=False)


# ============================================================================
# Cache
# ============================================================================


class CacheEntry(BaseModel):
    """Single content-addressed cache record.

    Serialized as ``{"url": ..., "identity": ..., "timestamp": ...}`` so the
    persisted text matches what other clients of the same store write.
    """

    key: str
    payload: str = Field(..., alias="url")
    identity: str = ""
    created_at: int = Field(..., alias="timestamp", description="Write time in epoch ms")

    model_config = ConfigDict(populate_by_name=True)

    def to_text(self) -> str:
        return self.model_dump_json(by_alias=True, exclude={"key"})

    @classmethod
    def from_text(cls, key: str, text: str) -> "CacheEntry":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Cache entry must be a JSON object")
        return cls.model_validate({**data, "key": key})


# ============================================================================
# Panorama pipeline
# ============================================================================


class MultiRoomConfig(BaseModel):
    """Configuration for a multi-room panorama batch."""

    num_rooms: Literal[2, 3]
    use_anchor_image: bool = True


class PanoramaDimensions(BaseModel):
    aspect_ratio: str
    total_width: int
    total_height: int
    room_width: int
    room_height: int


class PanoramaRequest(BaseModel):
    """Everything sent (or about to be sent) to the image provider for one batch."""

    room_ids: List[str]
    path_description: str
    prompt: str
    reference_images: List[str] = Field(default_factory=list)
    dimensions: PanoramaDimensions
    cache_key: str


class PanoramaResult(BaseModel):
    request: PanoramaRequest
    panorama_url: str
    scene_images: List[str] = Field(default_factory=list)
    from_cache: bool = False


class GenerationEvent(BaseModel):
    """Observable progress record emitted by the orchestrator to listeners."""

    kind: str
    room_ids: List[str] = Field(default_factory=list)
    detail: Dict[str, Any] = Field(default_factory=dict)
    timestamp: float
