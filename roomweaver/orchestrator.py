"""
Batch room orchestrator.

Fully decoupled from configuration files and storage: the image provider,
biome library, caches and collaborators are all injected.

Coordinates one batch of 1-3 adjacent rooms:
1. Validate the request (fails fast, before any external call)
2. Resolve biomes and build room bases in parallel (deterministic)
3. Look up the panorama in the scene cache
4. Otherwise compose one panorama request and generate it (provider call)
5. Slice the panorama into per-room scenes and attach them by index

Art is optional. When steps 3-5 fail the rooms are still returned, with
``scene_image=None``, so the game can fall back to its tile renderer.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from roomweaver.cache import AssetCache
from roomweaver.config import Config
from roomweaver.environment.biomes import (
    BUILTIN_BIOMES,
    BiomeGenerationError,
    BiomeLibrary,
    biome_for_room_number,
)
from roomweaver.environment.layout import LayoutConfig
from roomweaver.environment.placement import PlacementEngine
from roomweaver.image_provider import ImageGenerator
from roomweaver.logging_utils import log_cache, log_deterministic, log_error, log_success
from roomweaver.panorama.compositor import PanoramaCompositor, PanoramaGenerationError
from roomweaver.panorama.slicer import PanoramaSliceError, slice_panorama
from roomweaver.rooms import NpcTextWriter, build_room_base
from roomweaver.schemas import (
    BiomeDefinition,
    GenerationEvent,
    MultiRoomConfig,
    PanoramaRequest,
    PanoramaResult,
    Room,
    RoomBase,
)


BiomeSpec = Union[str, BiomeDefinition, None]
EventListener = Callable[[GenerationEvent], None]

MAX_BATCH_SIZE = 3


class RoomOrchestrator:
    """
    Generates rooms and their scene art in batches.

    Fully decoupled - accepts all dependencies as parameters.
    """

    def __init__(
        self,
        image_generator: ImageGenerator,
        *,
        biome_library: Optional[BiomeLibrary] = None,
        placement: Optional[PlacementEngine] = None,
        layout_config: Optional[LayoutConfig] = None,
        scene_cache: Optional[AssetCache] = None,
        compositor: Optional[PanoramaCompositor] = None,
        viewport: Optional[Tuple[int, int]] = None,
        event_listeners: Optional[List[EventListener]] = None,
        npc_text_writer: Optional[NpcTextWriter] = None,
    ):
        """Initialize orchestrator with all dependencies injected.

        Args:
            image_generator: Provider used by the default compositor
            biome_library: Biome lookup/generation (built-in biomes only by default)
            placement: Placement engine shared by every room
            layout_config: Grid geometry shared by every room
            scene_cache: Cache of panorama URLs keyed by request content.
                Defaults to an in-memory cache in the ``scene`` namespace.
            compositor: Panorama compositor (defaults to one around ``image_generator``)
            viewport: ``(width, height)`` each sliced scene is scaled to
            event_listeners: Callables receiving every ``GenerationEvent``.
                Listener failures are logged and never interrupt generation.
            npc_text_writer: Optional async dialogue writer for NPCs
        """
        self.image_generator = image_generator
        self.biome_library = biome_library or BiomeLibrary()
        self.placement = placement or PlacementEngine()
        self.layout_config = layout_config or LayoutConfig()
        self.scene_cache = scene_cache or AssetCache(namespace="scene")
        self.compositor = compositor or PanoramaCompositor(image_generator)
        self.viewport = viewport or (Config.VIEWPORT_WIDTH, Config.VIEWPORT_HEIGHT)
        self.event_listeners = event_listeners or []
        self.npc_text_writer = npc_text_writer

        # Geometry problems are input errors; surface them at construction
        self.layout_config.validate()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate_room_pair(
        self,
        current_id: str,
        next_id: str,
        story_seed: int,
        current_number: int,
        next_number: int,
        current_biome: BiomeSpec = None,
        next_biome: BiomeSpec = None,
        story_context: str | None = None,
        previous_scene_url: str | None = None,
    ) -> Tuple[Room, Room]:
        """Generate the current room and its neighbour with one shared panorama.

        Returns:
            ``(current_room, next_room)``; both have ``scene_image=None`` when
            art generation failed.
        """
        rooms = await self._generate_batch(
            [current_id, next_id],
            story_seed,
            [current_number, next_number],
            [current_biome, next_biome],
            story_context=story_context,
            previous_scene_url=previous_scene_url,
            use_anchor_image=True,
        )
        return rooms[0], rooms[1]

    async def generate_multi_room_batch(
        self,
        room_ids: Sequence[str],
        story_seed: int,
        starting_room_number: int,
        config: MultiRoomConfig,
        previous_scene_url: str | None = None,
        story_context: str | None = None,
        biome_keys: Optional[Sequence[BiomeSpec]] = None,
    ) -> List[Room]:
        """Generate ``config.num_rooms`` consecutive rooms from one panorama.

        Room ``i`` gets room number ``starting_room_number + i``.

        Raises:
            ValueError: ``room_ids`` (or ``biome_keys``) does not match
                ``config.num_rooms``. Raised before any external call.
        """
        if len(room_ids) != config.num_rooms:
            raise ValueError(
                f"Expected {config.num_rooms} room ids for this batch, got {len(room_ids)}"
            )
        if biome_keys is not None and len(biome_keys) != config.num_rooms:
            raise ValueError(
                f"Expected {config.num_rooms} biome keys for this batch, got {len(biome_keys)}"
            )

        numbers = [starting_room_number + offset for offset in range(config.num_rooms)]
        biomes = list(biome_keys) if biome_keys is not None else [None] * config.num_rooms
        return await self._generate_batch(
            list(room_ids),
            story_seed,
            numbers,
            biomes,
            story_context=story_context,
            previous_scene_url=previous_scene_url,
            use_anchor_image=config.use_anchor_image,
        )

    async def generate_single_room(
        self,
        room_id: str,
        story_seed: int,
        room_number: int,
        biome: BiomeSpec = None,
        story_context: str | None = None,
        previous_scene_url: str | None = None,
    ) -> Room:
        """Generate one room with a single-scene (5:4) image."""
        rooms = await self._generate_batch(
            [room_id],
            story_seed,
            [room_number],
            [biome],
            story_context=story_context,
            previous_scene_url=previous_scene_url,
            use_anchor_image=True,
        )
        return rooms[0]

    # ------------------------------------------------------------------
    # Batch pipeline
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_batch(room_ids: Sequence[str], room_numbers: Sequence[int]) -> None:
        if not 1 <= len(room_ids) <= MAX_BATCH_SIZE:
            raise ValueError(
                f"A batch holds 1-{MAX_BATCH_SIZE} rooms, got {len(room_ids)}"
            )
        if len(room_numbers) != len(room_ids):
            raise ValueError("Every room id needs exactly one room number")
        if any(not room_id for room_id in room_ids):
            raise ValueError("Room ids must be non-empty")
        if len(set(room_ids)) != len(room_ids):
            raise ValueError(f"Room ids must be unique within a batch: {list(room_ids)}")
        for number in room_numbers:
            if number < 0:
                raise ValueError(f"room_number must be >= 0, got {number}")

    async def _generate_batch(
        self,
        room_ids: List[str],
        story_seed: int,
        room_numbers: List[int],
        biomes: List[BiomeSpec],
        *,
        story_context: str | None,
        previous_scene_url: str | None,
        use_anchor_image: bool,
    ) -> List[Room]:
        self._validate_batch(room_ids, room_numbers)
        self._emit("batch_started", room_ids, room_numbers=list(room_numbers))

        resolved = await asyncio.gather(
            *(
                self._resolve_biome(spec, number, story_context)
                for spec, number in zip(biomes, room_numbers)
            )
        )

        # Room bases are independent and deterministic; build them side by side
        bases: List[RoomBase] = list(
            await asyncio.gather(
                *(
                    build_room_base(
                        room_id,
                        story_seed,
                        number,
                        biome,
                        layout_config=self.layout_config,
                        placement=self.placement,
                        story_context=story_context,
                        npc_text_writer=self.npc_text_writer,
                    )
                    for room_id, number, biome in zip(room_ids, room_numbers, resolved)
                )
            )
        )
        log_deterministic(
            f"Built {len(bases)} room(s): "
            + ", ".join(f"{base.id}#{base.room_number} {base.room_type.value}" for base in bases)
        )
        self._emit(
            "rooms_built",
            room_ids,
            objects={base.id: len(base.objects) for base in bases},
        )

        result = await self._render_scenes(
            bases,
            story_context=story_context,
            previous_scene_url=previous_scene_url,
            use_anchor_image=use_anchor_image,
        )

        if result is None:
            rooms = [Room.from_base(base) for base in bases]
        else:
            rooms = [
                Room.from_base(base, scene_image=scene)
                for base, scene in zip(bases, result.scene_images)
            ]

        self._emit(
            "batch_completed",
            room_ids,
            has_art=result is not None,
            from_cache=bool(result and result.from_cache),
        )
        return rooms

    async def _resolve_biome(
        self,
        spec: BiomeSpec,
        room_number: int,
        story_context: str | None,
    ) -> BiomeDefinition:
        if isinstance(spec, BiomeDefinition):
            return spec
        try:
            return await self.biome_library.resolve(spec, room_number, story_context)
        except BiomeGenerationError as exc:
            fallback = biome_for_room_number(room_number)
            log_error(f"{exc}. Using '{fallback}' for room {room_number}.")
            self._emit(
                "biome_fallback",
                [],
                requested=spec,
                fallback=fallback,
                error=str(exc),
            )
            return BUILTIN_BIOMES[fallback]

    async def _render_scenes(
        self,
        bases: Sequence[RoomBase],
        *,
        story_context: str | None,
        previous_scene_url: str | None,
        use_anchor_image: bool,
    ) -> Optional[PanoramaResult]:
        """Produce one scene per room, or None when art is unavailable."""
        room_ids = [base.id for base in bases]
        try:
            request = self.compositor.prepare(
                bases,
                story_context=story_context,
                previous_scene_url=previous_scene_url,
                use_anchor_image=use_anchor_image,
            )
        except PanoramaGenerationError as exc:
            return self._art_failed(room_ids, exc)

        cached_url = await self.scene_cache.get(request.cache_key)
        if cached_url:
            try:
                scenes = await self._slice(cached_url, len(bases))
            except Exception as exc:
                # Stale or unreadable URL: forget it and regenerate once
                log_cache(f"Cached panorama for {', '.join(room_ids)} failed to slice: {exc}")
                await self.scene_cache.delete(request.cache_key)
                self._emit("scene_cache_invalidated", room_ids, error=str(exc))
            else:
                log_success(f"Scene art for {', '.join(room_ids)} served from cache")
                self._emit("scene_cache_hit", room_ids, cache_key=request.cache_key)
                return PanoramaResult(
                    request=request,
                    panorama_url=cached_url,
                    scene_images=scenes,
                    from_cache=True,
                )

        # Any failure from here on yields art-less rooms
        try:
            image = await self.compositor.generate(request)
            scenes = await self._slice(image.url, len(bases))
        except Exception as exc:
            return self._art_failed(room_ids, exc, request=request)

        await self.scene_cache.set(request.cache_key, image.url, identity=",".join(room_ids))
        log_success(f"Scene art ready for {', '.join(room_ids)}")
        self._emit(
            "panorama_generated",
            room_ids,
            cache_key=request.cache_key,
            aspect_ratio=request.dimensions.aspect_ratio,
        )
        return PanoramaResult(request=request, panorama_url=image.url, scene_images=scenes)

    async def _slice(self, image_url: str, num_rooms: int) -> List[str]:
        width, height = self.viewport
        scenes = await slice_panorama(image_url, num_rooms, width, height)
        if len(scenes) != num_rooms:
            raise PanoramaSliceError(f"Expected {num_rooms} slices, got {len(scenes)}")
        return scenes

    def _art_failed(
        self,
        room_ids: List[str],
        exc: Exception,
        *,
        request: Optional[PanoramaRequest] = None,
    ) -> None:
        log_error(f"Scene art unavailable for {', '.join(room_ids)}: {exc}")
        detail: dict[str, Any] = {"error": str(exc), "error_type": type(exc).__name__}
        if request is not None:
            detail["cache_key"] = request.cache_key
        self._emit("panorama_failed", room_ids, **detail)
        return None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit(self, kind: str, room_ids: Sequence[str], **detail: Any) -> None:
        if not self.event_listeners:
            return
        event = GenerationEvent(
            kind=kind,
            room_ids=list(room_ids),
            detail=detail,
            timestamp=time.time(),
        )
        for listener in self.event_listeners:
            try:
                listener(event)
            except Exception as exc:  # pragma: no cover - diagnostic hook
                log_error(f"Event listener failed on '{kind}': {exc}")


__all__ = ["BiomeSpec", "EventListener", "MAX_BATCH_SIZE", "RoomOrchestrator"]
