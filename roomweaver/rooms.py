"""Room assembly: layout + room type + placed inhabitants.

A room base is everything about a room that does not need the image
provider. It is fully determined by the story seed, room number, biome and
configuration; only the optional NPC dialogue writer can add non-determinism,
and it only touches ``interaction_text``.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional

from roomweaver.environment.layout import LayoutConfig, generate_layout
from roomweaver.environment.placement import (
    DEFAULT_NPC_TEXT,
    PlacementEngine,
    classify_room,
    room_description,
)
from roomweaver.logging_utils import log_error, log_info
from roomweaver.schemas import BiomeDefinition, Entity, EntityKind, RoomBase
from roomweaver.sequence import SeededSequence, room_seed


# (room_number, story_context) -> one line of NPC dialogue
NpcTextWriter = Callable[[int, str], Awaitable[str]]


async def _write_npc_texts(
    objects: List[Entity],
    room_number: int,
    story_context: str,
    writer: NpcTextWriter,
) -> List[Entity]:
    npc_indexes = [i for i, entity in enumerate(objects) if entity.kind == EntityKind.NPC]
    if not npc_indexes:
        return objects

    results = await asyncio.gather(
        *(writer(room_number, story_context) for _ in npc_indexes),
        return_exceptions=True,
    )

    updated = list(objects)
    for index, result in zip(npc_indexes, results):
        if isinstance(result, BaseException):
            log_error(f"NPC dialogue failed for {objects[index].id}: {result}")
            text = DEFAULT_NPC_TEXT
        else:
            text = result.strip() or DEFAULT_NPC_TEXT
        updated[index] = objects[index].model_copy(update={"interaction_text": text})
    log_info(f"Wrote dialogue for {len(npc_indexes)} NPC(s) in room {room_number}")
    return updated


async def build_room_base(
    room_id: str,
    story_seed: int,
    room_number: int,
    biome: BiomeDefinition,
    *,
    layout_config: Optional[LayoutConfig] = None,
    placement: Optional[PlacementEngine] = None,
    story_context: str | None = None,
    npc_text_writer: Optional[NpcTextWriter] = None,
) -> RoomBase:
    """Build the deterministic part of a room.

    Layout and placement draw from separate sequences seeded with the same
    room seed, so changing placement rules never moves the corridor.

    Args:
        room_id: Stable identifier, also used to derive entity ids
        story_seed: Seed shared by every room of the story
        room_number: 0-based room index; room 0 is always peaceful
        biome: Resolved biome definition
        layout_config: Grid geometry (defaults to 25x20 tiles of 40 px)
        placement: Placement engine (defaults use ``Config`` tunables)
        story_context: Story text used for item names and NPC dialogue
        npc_text_writer: Optional async writer for NPC dialogue; only called
            when ``story_context`` is provided. Failures fall back to the
            default line.

    Raises:
        ValueError: Invalid layout configuration or negative room number
    """

    if room_number < 0:
        raise ValueError(f"room_number must be >= 0, got {room_number}")

    layout = generate_layout(room_id, story_seed, room_number, biome, config=layout_config)

    rng = SeededSequence(room_seed(story_seed, room_number))
    room_type = classify_room(room_number, rng)
    engine = placement or PlacementEngine()
    result = engine.place_room_objects(
        layout,
        room_id,
        room_number,
        room_type,
        rng,
        story_context=story_context,
    )

    objects = result.placed
    if story_context and npc_text_writer is not None:
        objects = await _write_npc_texts(objects, room_number, story_context, npc_text_writer)

    return RoomBase(
        id=room_id,
        room_number=room_number,
        room_type=room_type,
        description=room_description(room_type, biome.name),
        layout=layout,
        objects=objects,
    )


__all__ = ["NpcTextWriter", "build_room_base"]
