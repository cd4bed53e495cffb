"""Tests for collision-aware entity placement."""

from itertools import combinations

import pytest

from roomweaver.environment import BUILTIN_BIOMES, generate_layout
from roomweaver.environment.placement import (
    PlacementEngine,
    classify_room,
    enemy_level,
    extract_story_terms,
    room_description,
    story_aligned_items,
)
from roomweaver.schemas import EntityKind, RoomType
from roomweaver.sequence import SeededSequence, room_seed


def make_layout(story_seed: int = 42, room_number: int = 1):
    return generate_layout("room", story_seed, room_number, BUILTIN_BIOMES["forest"])


def place(room_type: RoomType, *, story_seed: int = 42, engine: PlacementEngine | None = None, story_context=None):
    layout = make_layout(story_seed)
    rng = SeededSequence(room_seed(story_seed, 1))
    engine = engine or PlacementEngine(min_distance=100, max_attempts=20, jitter=30, spawn_clearance=100)
    return layout, engine.place_room_objects(
        layout, "room", 1, room_type, rng, story_context=story_context
    )


def test_first_room_is_always_peaceful():
    rng = SeededSequence(1)
    assert classify_room(0, rng) == RoomType.PEACEFUL
    assert rng.draws == 0


def test_later_rooms_draw_a_type():
    types = {classify_room(5, SeededSequence(seed)) for seed in range(200)}
    assert types == set(RoomType)


def test_enemy_level_and_description():
    assert [enemy_level(n) for n in (0, 1, 2, 5, 10)] == [1, 1, 2, 3, 6]
    assert room_description(RoomType.COMBAT, "Forest") == "Forest - Danger Ahead"
    assert room_description(RoomType.PEACEFUL, "Cave") == "Cave - Safe Haven"


@pytest.mark.parametrize("room_type", list(RoomType))
@pytest.mark.parametrize("story_seed", [1, 7, 42, 1234])
def test_placed_entities_keep_minimum_distance(room_type, story_seed):
    _, result = place(room_type, story_seed=story_seed)

    for first, second in combinations(result.placed, 2):
        assert first.position.distance_to(second.position) >= 100
    assert len(result.placed) + result.shortfall == result.requested


@pytest.mark.parametrize(
    "room_type, kinds, low, high",
    [
        (RoomType.COMBAT, {EntityKind.ENEMY}, 2, 4),
        (RoomType.PEACEFUL, {EntityKind.NPC}, 1, 2),
        (RoomType.TREASURE, {EntityKind.ITEM}, 2, 4),
        (RoomType.PUZZLE, {EntityKind.ITEM}, 2, 4),
        (RoomType.MIXED, {EntityKind.ENEMY, EntityKind.NPC, EntityKind.ITEM}, 5, 10),
    ],
)
def test_requested_counts_follow_room_type(room_type, kinds, low, high):
    _, result = place(room_type)

    assert low <= result.requested <= high
    assert {entity.kind for entity in result.placed} <= kinds


def test_candidates_exclude_spawn_box():
    layout = make_layout()
    engine = PlacementEngine(spawn_clearance=100)
    spawn = layout.spawn_point

    candidates = engine.candidate_points(layout)

    assert candidates
    for point in candidates:
        assert abs(point.x - spawn.x) > 100 or abs(point.y - spawn.y) > 100


def test_exhaustion_is_reported_as_shortfall():
    engine = PlacementEngine(min_distance=10_000, max_attempts=5)
    _, result = place(RoomType.COMBAT, engine=engine)

    assert len(result.placed) == 1
    assert result.shortfall == result.requested - 1


def test_no_candidates_places_nothing():
    engine = PlacementEngine(spawn_clearance=100_000)
    _, result = place(RoomType.TREASURE, engine=engine)

    assert result.placed == []
    assert result.shortfall == result.requested


def test_placement_is_deterministic_with_stable_ids():
    _, first = place(RoomType.MIXED)
    _, second = place(RoomType.MIXED)

    assert first == second
    for entity in first.placed:
        prefix = {EntityKind.ENEMY: "enemy", EntityKind.NPC: "npc", EntityKind.ITEM: "item"}[entity.kind]
        assert entity.id.startswith(f"{prefix}_room_")


def test_enemies_carry_level_and_optional_drops():
    drops = []
    for seed in range(20):
        _, result = place(RoomType.COMBAT, story_seed=seed, story_context="Seek the Ember Crown")
        for enemy in result.placed:
            assert enemy.level == 1
            if enemy.item_drop is not None:
                drops.append(enemy.item_drop)

    assert drops
    assert all(drop.id.startswith("drop_room_") for drop in drops)


def test_invalid_engine_settings():
    with pytest.raises(ValueError):
        PlacementEngine(min_distance=-1)
    with pytest.raises(ValueError):
        PlacementEngine(max_attempts=0)


def test_extract_story_terms():
    assert extract_story_terms("the wizard Merlin guards Camelot") == ("Merlin", "Camelot")
    assert extract_story_terms("no names here") == ()


def test_story_aligned_items_use_story_terms():
    items = story_aligned_items("Ashford", "Forest", SeededSequence(1), "loot")

    assert [item.id for item in items] == [
        "loot_wellness_pack",
        "loot_strategy_notes",
        "loot_momentum_token",
        "loot_safety_gear",
    ]
    assert items[0].name == "Ashford Wellness Kit"
    assert items[0].effect.type == "heal"


def test_story_aligned_items_fall_back_to_biome():
    items = story_aligned_items(None, "Desert", SeededSequence(1), "loot")
    assert items[0].name == "Desert Wellness Kit"
