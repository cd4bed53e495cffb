"""Text building blocks for panorama requests.

Everything here is pure: the same room bases always produce the same path
description and prompt, which is what makes the prompt usable as a cache key.
"""

from __future__ import annotations

from typing import List, Sequence

from roomweaver.schemas import Layout, PanoramaDimensions, RoomBase


PIXEL_ART_STYLE = (
    "16-bit pixel art, top-down view, game sprite, Stardew Valley style, retro gaming aesthetic"
)

LAYOUT_REFERENCE_GUIDANCE = """REFERENCE IMAGE INTERPRETATION:
The tile-map reference shows the walkable path in bright GOLD on a DARK background.
- GOLD areas are walkable paths: render them as biome-appropriate terrain (dirt trails, stone walkways, wooden bridges)
- DARK areas are non-walkable: fill them completely with obstacles, vegetation or walls fitting the biome
- Preserve the shape and position of the gold path exactly; no empty voids or black background may remain"""

# Vertical movement (in % of height) below which a path counts as level
LEVEL_TOLERANCE_PCT = 5


_DIMENSIONS = {
    1: PanoramaDimensions(
        aspect_ratio="5:4", total_width=1000, total_height=800, room_width=1000, room_height=800
    ),
    2: PanoramaDimensions(
        aspect_ratio="16:9", total_width=1600, total_height=900, room_width=800, room_height=900
    ),
    3: PanoramaDimensions(
        aspect_ratio="21:9", total_width=2100, total_height=900, room_width=700, room_height=900
    ),
}


def get_panorama_dimensions(num_rooms: int) -> PanoramaDimensions:
    """Fixed provider canvas for a batch of 1-3 rooms.

    Raises:
        ValueError: ``num_rooms`` is outside 1-3
    """
    try:
        return _DIMENSIONS[num_rooms].model_copy()
    except KeyError:
        raise ValueError(
            f"Panorama batches span 1 to 3 rooms, got {num_rooms}"
        ) from None


def position_label(index: int, count: int) -> str:
    if count == 1:
        return "SINGLE"
    if index == 0:
        return "LEFT"
    if index == count - 1:
        return "RIGHT"
    return "CENTER"


def _pct(value: float, total: float) -> int:
    return round(value / total * 100)


def describe_path_layout(layouts: Sequence[Layout]) -> str:
    """Describe each room's path trajectory and the seams between rooms.

    Heights are percentages from the top of the image, so a path that
    "rises" moves toward the top edge as it goes right.
    """

    if not layouts:
        raise ValueError("Cannot describe an empty batch of layouts")

    lines: List[str] = []
    entries: List[int] = []
    exits: List[int] = []

    for index, layout in enumerate(layouts):
        height = layout.pixel_height
        entry = _pct(layout.spawn_point.y, height)
        exit_ = _pct(layout.exit_point.y, height)
        ys = [point.y for point in layout.path_points]
        top, bottom = _pct(min(ys), height), _pct(max(ys), height)

        if exit_ < entry - LEVEL_TOLERANCE_PCT:
            trajectory = "rising"
        elif exit_ > entry + LEVEL_TOLERANCE_PCT:
            trajectory = "falling"
        else:
            trajectory = "level"

        entries.append(entry)
        exits.append(exit_)
        label = position_label(index, len(layouts))
        lines.append(
            f"Room {index + 1} ({label}): path enters at {entry}% height from the left edge, "
            f"exits at {exit_}% height on the right edge, {trajectory} overall, "
            f"wandering between {top}% and {bottom}% height."
        )

    for index in range(len(layouts) - 1):
        seam = round((exits[index] + entries[index + 1]) / 2)
        lines.append(
            f"Transition {index + 1}->{index + 2}: the path crosses the boundary at {seam}% height "
            f"and must continue unbroken."
        )

    return "\n".join(lines)


def truncate_story_context(story_context: str | None, char_budget: int) -> str:
    if not story_context:
        return ""
    text = " ".join(story_context.split())
    if len(text) <= char_budget:
        return text
    return text[:char_budget].rstrip() + "..."


def build_panorama_prompt(
    rooms: Sequence[RoomBase],
    story_context: str | None = None,
    char_budget: int = 300,
    *,
    path_description: str | None = None,
) -> str:
    """Compose the image prompt for one seamless horizontal panorama.

    Args:
        rooms: Room bases in left-to-right order (1-3)
        story_context: Optional narrative text, truncated to ``char_budget``
        char_budget: Maximum characters of story context embedded
        path_description: Pre-computed ``describe_path_layout`` output

    Raises:
        ValueError: Room count outside 1-3
    """

    dimensions = get_panorama_dimensions(len(rooms))
    if path_description is None:
        path_description = describe_path_layout([room.layout for room in rooms])

    room_lines = []
    for index, room in enumerate(rooms):
        biome = room.layout.biome
        atmosphere = f" ({biome.atmosphere})" if biome.atmosphere else ""
        room_lines.append(
            f"[Room {room.room_number} ({position_label(index, len(rooms))})]: "
            f"{biome.name}{atmosphere}. {room.description}"
        )

    sections = []
    story = truncate_story_context(story_context, char_budget)
    if story:
        sections.append(f"STORY CONTEXT: {story}")

    if len(rooms) == 1:
        sections.append("SINGLE ROOM SCENE:\n" + room_lines[0])
        request = (
            f"Create one top-down scene at {dimensions.aspect_ratio} "
            f"({dimensions.total_width}x{dimensions.total_height}) with the path running "
            f"from the left edge to the right edge."
        )
    else:
        sections.append(
            f"MULTI-ROOM PANORAMA ({len(rooms)} connected rooms):\n" + "\n".join(room_lines)
        )
        request = (
            f"Create ONE seamless horizontal panorama at {dimensions.aspect_ratio} "
            f"({dimensions.total_width}x{dimensions.total_height}) showing these {len(rooms)} "
            f"locations side by side, each occupying an equal-width vertical strip. "
            f"Flow continuously from left to right with smooth transitions, consistent lighting "
            f"and atmosphere across all sections."
        )

    sections.append("PATH LAYOUT:\n" + path_description)
    sections.append(request)
    sections.append(f"Style: {PIXEL_ART_STYLE}.")
    return "\n\n".join(sections)


def build_refinement_request(panorama_prompt: str) -> str:
    """Instruction handed to the narrative model that condenses the prompt."""
    return (
        "You are a creative prompt generator for pixel art game scenes.\n\n"
        f"{panorama_prompt}\n\n"
        "Generate a detailed, vivid prompt for creating this image. Keep the path layout exactly "
        "as described, keep transitions between areas smooth, and make it feel like a classic "
        "top-down 16-bit RPG.\n\n"
        "Output ONLY the image generation prompt, 2-3 sentences maximum."
    )


__all__ = [
    "LAYOUT_REFERENCE_GUIDANCE",
    "PIXEL_ART_STYLE",
    "build_panorama_prompt",
    "build_refinement_request",
    "describe_path_layout",
    "get_panorama_dimensions",
    "position_label",
    "truncate_story_context",
]
