"""Tile-map reference images handed to the provider as a path guide.

The layouts of a batch are drawn side by side: walkable tiles in gold, the
rest dark, with the path polyline traced on top so the corridor reads clearly
even where the widened corridor touches obstacles.
"""

from __future__ import annotations

from io import BytesIO
from typing import Sequence

from PIL import Image, ImageDraw

from roomweaver.image_provider import to_data_url
from roomweaver.schemas import Layout

PATH_COLOR = "#FFD700"
BLOCKED_COLOR = "#222222"


def render_stitched_layouts(layouts: Sequence[Layout]) -> Image.Image:
    if not layouts:
        raise ValueError("At least one layout is required")

    total_width = sum(layout.pixel_width for layout in layouts)
    max_height = max(layout.pixel_height for layout in layouts)
    canvas = Image.new("RGB", (total_width, max_height), BLOCKED_COLOR)
    draw = ImageDraw.Draw(canvas)

    x_offset = 0
    for layout in layouts:
        size = layout.tile_size
        for row, tiles in enumerate(layout.tiles):
            for col, tile in enumerate(tiles):
                if tile.walkable:
                    left = x_offset + col * size
                    top = row * size
                    draw.rectangle((left, top, left + size - 1, top + size - 1), fill=PATH_COLOR)

        points = [(x_offset + p.x, p.y) for p in layout.path_points]
        if len(points) > 1:
            draw.line(points, fill=PATH_COLOR, width=int(size * 1.5), joint="curve")
        x_offset += layout.pixel_width

    return canvas


def stitched_reference_data_url(layouts: Sequence[Layout]) -> str:
    """PNG data URL of the stitched tile maps."""
    image = render_stitched_layouts(layouts)
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return to_data_url(buffer.getvalue())


__all__ = ["render_stitched_layouts", "stitched_reference_data_url"]
