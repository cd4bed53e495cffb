"""Tests for the stitched tile-map reference image."""

import pytest
from PIL import ImageColor

from roomweaver.environment import BUILTIN_BIOMES, generate_layout
from roomweaver.panorama.reference import (
    BLOCKED_COLOR,
    PATH_COLOR,
    render_stitched_layouts,
    stitched_reference_data_url,
)


def layouts(count: int):
    return [generate_layout(f"r{i}", 5, i, BUILTIN_BIOMES["forest"]) for i in range(count)]


def test_layouts_are_drawn_side_by_side():
    rooms = layouts(2)

    image = render_stitched_layouts(rooms)

    assert image.size == (2000, 800)
    gold = ImageColor.getrgb(PATH_COLOR)
    for offset, layout in zip((0, 1000), rooms):
        spawn = layout.spawn_point
        assert image.getpixel((offset + int(spawn.x), int(spawn.y))) == gold
    colors = {color for _, color in image.getcolors(maxcolors=1 << 16)}
    assert colors == {gold, ImageColor.getrgb(BLOCKED_COLOR)}


def test_reference_data_url():
    assert stitched_reference_data_url(layouts(1)).startswith("data:image/png;base64,")


def test_empty_batch_rejected():
    with pytest.raises(ValueError):
        render_stitched_layouts([])
