"""Tests for seeded layout generation and path carving."""

import pytest

from roomweaver.environment import BUILTIN_BIOMES, LayoutConfig, generate_layout, max_path_length
from roomweaver.environment.helpers import exit_reachable, path_is_connected, path_tiles
from roomweaver.environment.layout import carve_path
from roomweaver.schemas import BiomeDefinition, TileTag
from roomweaver.sequence import SeededSequence


FOREST = BUILTIN_BIOMES["forest"]


def test_same_inputs_produce_identical_layouts():
    first = generate_layout("room-a", 42, 3, FOREST)
    second = generate_layout("room-b", 42, 3, FOREST)

    assert first == second


def test_different_room_numbers_differ():
    first = generate_layout("r", 42, 0, FOREST)
    second = generate_layout("r", 42, 1, FOREST)

    assert first.tiles != second.tiles


@pytest.mark.parametrize("biome_key", sorted(BUILTIN_BIOMES))
@pytest.mark.parametrize("story_seed", [0, 1, 42, 987654])
def test_path_is_valid_for_every_builtin_biome(biome_key, story_seed):
    config = LayoutConfig()
    for room_number in range(4):
        layout = generate_layout("r", story_seed, room_number, BUILTIN_BIOMES[biome_key])

        tiles = path_tiles(layout)
        assert tiles[0] == (0, config.height // 2)
        assert tiles[-1] == (config.width - 1, config.height // 2)
        assert len(layout.path_points) >= config.min_path_length
        assert layout.spawn_point == layout.path_points[0]
        assert path_is_connected(layout)
        assert exit_reachable(layout)


@pytest.mark.parametrize("meander", [0.0, 0.1, 0.2, 0.3])
def test_low_meander_paths_still_reach_minimum_length(meander):
    for seed in range(200):
        path = carve_path(25, 20, SeededSequence(seed), min_length=40, meander=meander)

        assert len(path) >= 40, f"seed {seed} carved {len(path)} tiles"
        assert path[-1] == (24, 10)
        assert len(set(path)) == len(path)


def test_low_meander_custom_biome_layout_is_valid():
    marsh = BiomeDefinition(name="Still Marsh", obstacle_tiles=["reed"], path_meander=0.0)

    for story_seed in range(20):
        layout = generate_layout("marsh", story_seed, 0, marsh)

        assert len(layout.path_points) >= LayoutConfig().min_path_length
        assert path_is_connected(layout)
        assert exit_reachable(layout)


def test_carve_path_monotone_and_unique():
    rng = SeededSequence(2024)
    path = carve_path(25, 20, rng, min_length=120, meander=0.9)

    assert len(path) >= 120
    assert len(set(path)) == len(path)
    xs = [x for x, _ in path]
    assert xs == sorted(xs)


def test_straight_path_without_meander():
    calm = BiomeDefinition(name="Salt Flat", obstacle_tiles=["rock"], path_meander=0.0)
    config = LayoutConfig(min_path_length=25, detour_chance=0.0)

    layout = generate_layout("flat", 5, 2, calm, config=config)

    assert len(layout.path_points) == 25
    assert {point.y for point in layout.path_points} == {10 * 40 + 20}


def test_walled_biome_has_wall_border():
    layout = generate_layout("d", 11, 12, BUILTIN_BIOMES["dungeon"])

    for row in range(layout.height):
        for col in range(layout.width):
            on_border = row in (0, layout.height - 1) or col in (0, layout.width - 1)
            tile = layout.tiles[row][col]
            if on_border and not tile.walkable:
                assert tile.biome_tag == TileTag.WALL


def test_open_biome_has_no_walls():
    layout = generate_layout("f", 11, 1, FOREST)

    tags = {tile.biome_tag for row in layout.tiles for tile in row}
    assert TileTag.WALL not in tags
    assert TileTag.PATH in tags


def test_minimum_length_that_cannot_fit_is_rejected():
    config = LayoutConfig(width=5, height=3, min_path_length=100)

    with pytest.raises(ValueError):
        config.validate()
    with pytest.raises(ValueError):
        generate_layout("tiny", 1, 0, FOREST, config=config)


def test_max_path_length_fits_default_grid():
    assert max_path_length(25, 20) == 25 + 18 * 23
    assert LayoutConfig().min_path_length <= max_path_length(25, 20)


def test_longest_guaranteed_path_is_carved():
    longest = max_path_length(6, 5)
    rng = SeededSequence(8)

    path = carve_path(6, 5, rng, min_length=longest, meander=0.0, detour_chance=0.0)

    assert len(path) >= longest
    assert path[-1] == (5, 2)
    assert len(set(path)) == len(path)
