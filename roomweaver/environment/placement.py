"""Collision-aware placement of room inhabitants along the corridor.

Placement is greedy and best-effort: each entity samples a random path point,
adds jitter, and is accepted when it keeps ``min_distance`` from everything
already placed. After ``max_attempts`` rejected candidates the entity is
skipped and the miss is reported through ``PlacementResult.shortfall``. An
earlier, unlucky placement can therefore starve later ones.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

from roomweaver.config import Config
from roomweaver.logging_utils import log_deterministic
from roomweaver.schemas import (
    Entity,
    EntityKind,
    Item,
    ItemEffect,
    Layout,
    PlacementResult,
    Position,
    RoomType,
)
from roomweaver.sequence import SeededSequence


ROOM_TYPES: Tuple[RoomType, ...] = (
    RoomType.COMBAT,
    RoomType.PEACEFUL,
    RoomType.TREASURE,
    RoomType.PUZZLE,
    RoomType.MIXED,
)

ENEMY_SPRITES = ("⚠️", "🚨", "🏃", "🥊", "🎯", "📉", "🧱")
NPC_SPRITES = ("👨", "👩", "🧑‍💼", "🧑‍🎓", "🧑‍🏫", "🧑‍🔬", "🧑‍🚀", "🧑‍⚕️")
ITEM_SPRITES = ("📦", "📘", "🧃", "🎒", "💼", "📊", "📝", "🔑")

DEFAULT_NPC_TEXT = "A traveler rests here"
DEFAULT_ITEM_TEXT = "Something glimmers on the path"
ITEM_DROP_CHANCE = 0.5

_DESCRIPTION_SUFFIX = {
    RoomType.COMBAT: "Danger Ahead",
    RoomType.PEACEFUL: "Safe Haven",
    RoomType.TREASURE: "Treasure Found",
    RoomType.PUZZLE: "Strategic Challenge",
    RoomType.MIXED: "Adventure Awaits",
}

_PROPER_NOUN = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b")


def classify_room(room_number: int, rng: SeededSequence) -> RoomType:
    """Pick the room type. The first room of a story is always peaceful."""
    if room_number == 0:
        return RoomType.PEACEFUL
    return rng.choice(ROOM_TYPES)


def room_description(room_type: RoomType, biome_name: str) -> str:
    return f"{biome_name} - {_DESCRIPTION_SUFFIX[room_type]}"


def enemy_level(room_number: int) -> int:
    return max(1, room_number // 2 + 1)


@lru_cache(maxsize=50)
def extract_story_terms(story_context: str) -> Tuple[str, ...]:
    """Proper nouns (one or two capitalised words) mentioned in the story, in order."""
    terms: List[str] = []
    for match in _PROPER_NOUN.findall(story_context):
        cleaned = match.strip()
        if 2 < len(cleaned) <= 32 and cleaned not in terms:
            terms.append(cleaned)
    return tuple(terms)


def story_aligned_items(
    story_context: str | None,
    biome_name: str,
    rng: SeededSequence,
    id_prefix: str,
) -> List[Item]:
    """Themed loot table named after a term from the story (or the biome)."""
    terms = extract_story_terms(story_context) if story_context else ()
    base = rng.choice(terms) if terms else (biome_name or "Story")

    return [
        Item(
            id=f"{id_prefix}_wellness_pack",
            name=f"{base} Wellness Kit",
            type="consumable",
            sprite="🩹",
            description=f"Restores stamina using support from {base}.",
            effect=ItemEffect(type="heal", value=30),
        ),
        Item(
            id=f"{id_prefix}_strategy_notes",
            name=f"{base} Strategy Notes",
            type="consumable",
            sprite="📓",
            description=f"Detailed insights to stay focused on {base}'s objectives.",
            effect=ItemEffect(type="mana", value=25),
        ),
        Item(
            id=f"{id_prefix}_momentum_token",
            name="Inspired Momentum Badge",
            type="equipment",
            sprite="🏅",
            description="Boosts confidence earned from recent progress.",
            effect=ItemEffect(type="damage_boost", value=5),
        ),
        Item(
            id=f"{id_prefix}_safety_gear",
            name=f"{base} Safety Vest",
            type="equipment",
            sprite="🦺",
            description=f"Protective gear endorsed by {base} to stay resilient.",
            effect=ItemEffect(type="defense_boost", value=3),
        ),
    ]


class PlacementEngine:
    """Seat enemies, NPCs and items on a layout's corridor.

    Args:
        min_distance: Minimum Euclidean distance (px) between any two entities
        max_attempts: Candidates tried per entity before it is skipped
        jitter: Maximum per-axis offset (px) applied to a sampled path point
        spawn_clearance: Path points within this distance of the spawn point on
            both axes are never used as candidates

    Defaults come from ``Config``.
    """

    def __init__(
        self,
        min_distance: float | None = None,
        max_attempts: int | None = None,
        jitter: float | None = None,
        spawn_clearance: float | None = None,
    ):
        self.min_distance = Config.PLACEMENT_MIN_DISTANCE if min_distance is None else min_distance
        self.max_attempts = Config.PLACEMENT_MAX_ATTEMPTS if max_attempts is None else max_attempts
        self.jitter = Config.PLACEMENT_JITTER if jitter is None else jitter
        self.spawn_clearance = (
            Config.PLACEMENT_SPAWN_CLEARANCE if spawn_clearance is None else spawn_clearance
        )
        if self.min_distance < 0 or self.jitter < 0 or self.spawn_clearance < 0:
            raise ValueError("Placement distances must be non-negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def candidate_points(self, layout: Layout) -> List[Position]:
        """Path points outside the spawn clearance box."""
        spawn = layout.spawn_point
        return [
            point
            for point in layout.path_points
            if abs(point.x - spawn.x) > self.spawn_clearance
            or abs(point.y - spawn.y) > self.spawn_clearance
        ]

    def is_clear(self, position: Position, placed: Sequence[Entity]) -> bool:
        return all(position.distance_to(entity.position) >= self.min_distance for entity in placed)

    def find_position(
        self,
        candidates: Sequence[Position],
        placed: Sequence[Entity],
        rng: SeededSequence,
    ) -> Optional[Position]:
        """Sample up to ``max_attempts`` jittered path points; ``None`` if all collide."""
        if not candidates:
            return None
        for _ in range(self.max_attempts):
            point = rng.choice(candidates)
            position = Position(
                x=point.x + rng.uniform_jitter(self.jitter),
                y=point.y + rng.uniform_jitter(self.jitter),
            )
            if self.is_clear(position, placed):
                return position
        return None

    def place_room_objects(
        self,
        layout: Layout,
        room_id: str,
        room_number: int,
        room_type: RoomType,
        rng: SeededSequence,
        *,
        story_context: str | None = None,
    ) -> PlacementResult:
        """Place the inhabitants appropriate for ``room_type``.

        Counts: combat/mixed 2-4 enemies, peaceful/mixed 1-2 NPCs,
        treasure/puzzle/mixed 2-4 items. Entity ids are derived from the room
        id and the entity's index so they are stable across regenerations.
        """

        candidates = self.candidate_points(layout)
        placed: List[Entity] = []
        requested = 0
        level = enemy_level(room_number)
        biome_name = layout.biome.name

        if room_type in (RoomType.COMBAT, RoomType.MIXED):
            count = rng.randint(2, 4)
            requested += count
            for index in range(count):
                position = self.find_position(candidates, placed, rng)
                if position is None:
                    continue
                item_drop = None
                if rng.random() >= ITEM_DROP_CHANCE:
                    loot = story_aligned_items(
                        story_context, biome_name, rng, f"drop_{room_id}_{index}"
                    )
                    item_drop = rng.choice(loot)
                placed.append(
                    Entity(
                        id=f"enemy_{room_id}_{index}",
                        position=position,
                        kind=EntityKind.ENEMY,
                        sprite_ref=rng.choice(ENEMY_SPRITES),
                        interaction_text=f"A hostile creature (Lv {level}) blocks your path!",
                        level=level,
                        item_drop=item_drop,
                    )
                )

        if room_type in (RoomType.PEACEFUL, RoomType.MIXED):
            count = rng.randint(1, 2)
            requested += count
            for index in range(count):
                position = self.find_position(candidates, placed, rng)
                if position is None:
                    continue
                placed.append(
                    Entity(
                        id=f"npc_{room_id}_{index}",
                        position=position,
                        kind=EntityKind.NPC,
                        sprite_ref=rng.choice(NPC_SPRITES),
                        interaction_text=DEFAULT_NPC_TEXT,
                    )
                )

        if room_type in (RoomType.TREASURE, RoomType.PUZZLE, RoomType.MIXED):
            count = rng.randint(2, 4)
            requested += count
            for index in range(count):
                position = self.find_position(candidates, placed, rng)
                if position is None:
                    continue
                placed.append(
                    Entity(
                        id=f"item_{room_id}_{index}",
                        position=position,
                        kind=EntityKind.ITEM,
                        sprite_ref=rng.choice(ITEM_SPRITES),
                        interaction_text=DEFAULT_ITEM_TEXT,
                    )
                )

        result = PlacementResult(placed=placed, requested=requested)
        log_deterministic(
            f"Placement {room_id}: {room_type.value} placed {len(placed)}/{requested}"
            + (f" (shortfall {result.shortfall})" if result.shortfall else "")
        )
        return result


__all__ = [
    "DEFAULT_ITEM_TEXT",
    "DEFAULT_NPC_TEXT",
    "PlacementEngine",
    "ROOM_TYPES",
    "classify_room",
    "enemy_level",
    "extract_story_terms",
    "room_description",
    "story_aligned_items",
]
