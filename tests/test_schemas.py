"""Tests for schema invariants and serialization helpers."""

import json

import pytest
from pydantic import ValidationError

from roomweaver.environment import BUILTIN_BIOMES, generate_layout
from roomweaver.schemas import (
    BiomeDefinition,
    CacheEntry,
    Entity,
    EntityKind,
    Layout,
    PlacementResult,
    Position,
    Room,
    RoomBase,
    RoomType,
    Tile,
    TileTag,
)


def test_cache_entry_text_uses_persisted_field_names():
    entry = CacheEntry(key="scene:k", payload="https://img/a.png", identity="a,b", created_at=123)

    data = json.loads(entry.to_text())

    assert data == {"url": "https://img/a.png", "identity": "a,b", "timestamp": 123}
    assert CacheEntry.from_text("scene:k", entry.to_text()) == entry


def test_cache_entry_rejects_non_objects():
    with pytest.raises(ValueError):
        CacheEntry.from_text("k", '"just a string"')


def test_biome_requires_obstacles():
    with pytest.raises(ValidationError):
        BiomeDefinition(name="Void", obstacle_tiles=[])
    with pytest.raises(ValidationError):
        BiomeDefinition(name="Spiky", path_meander=1.5)


def test_generated_geometry_is_frozen():
    layout = generate_layout("r", 1, 1, BUILTIN_BIOMES["forest"])

    with pytest.raises(ValidationError):
        layout.width = 3
    with pytest.raises(ValidationError):
        layout.spawn_point.x = 0
    with pytest.raises(ValidationError):
        Tile(walkable=True, biome_tag=TileTag.PATH, terrain="dirt").walkable = False


def test_layout_requires_path_points():
    with pytest.raises(ValidationError):
        Layout.model_validate(
            {
                "width": 1,
                "height": 1,
                "tile_size": 10,
                "tiles": [[{"walkable": True, "biome_tag": "path", "terrain": "dirt"}]],
                "path_points": [],
                "spawn_point": {"x": 5, "y": 5},
                "biome": {"name": "Forest"},
            }
        )


def test_placement_shortfall():
    entity = Entity(
        id="npc_r_0",
        position=Position(x=1, y=2),
        kind=EntityKind.NPC,
        sprite_ref="👩",
        interaction_text="hi",
    )
    assert PlacementResult(placed=[entity], requested=3).shortfall == 2
    assert PlacementResult(placed=[entity], requested=1).shortfall == 0


def test_entity_interaction_flag_is_mutable():
    entity = Entity(
        id="enemy_r_0",
        position=Position(x=1, y=2),
        kind=EntityKind.ENEMY,
        sprite_ref="🥊",
        interaction_text="grr",
        level=2,
    )
    entity.has_interacted = True
    assert entity.has_interacted

    with pytest.raises(ValidationError):
        Entity(id="e", position=Position(x=0, y=0), kind=EntityKind.ENEMY, sprite_ref="x", interaction_text="", level=0)


def test_room_from_base():
    base = RoomBase(
        id="r1",
        room_number=1,
        room_type=RoomType.TREASURE,
        description="Forest - Treasure Found",
        layout=generate_layout("r1", 1, 1, BUILTIN_BIOMES["forest"]),
    )

    room = Room.from_base(base, scene_image="data:image/png;base64,xx")

    assert room.id == "r1"
    assert room.scene_image == "data:image/png;base64,xx"
    assert room.scene_image_loading is False
    assert room.visited is False
    assert room.exit_direction == "right"
    assert Room.from_base(base).scene_image is None
