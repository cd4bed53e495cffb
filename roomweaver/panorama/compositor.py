"""Build and submit one image request spanning 1-3 adjacent rooms.

Generating neighbouring rooms in a single image gives a continuous horizon
and an unbroken path across room boundaries. The compositor turns the room
bases into a path description and prompt, assembles the reference images
(previous scene as style anchor first, optional tile-map guide second), and
hands exactly one ``ImageRequest`` to the provider.

``prepare`` is pure and deterministic, so its ``cache_key`` identifies the
request before any provider call. ``generate`` performs the external work and
converts every failure into ``PanoramaGenerationError``.
"""

from __future__ import annotations

from typing import AsyncIterator, Callable, List, Optional, Sequence

from roomweaver.cache import scene_cache_key
from roomweaver.config import Config
from roomweaver.image_provider import ImageGenerator, ImageProviderError, ImageRequest, ImageResult
from roomweaver.llm_utils import collect_text_stream
from roomweaver.logging_utils import log_info, log_provider
from roomweaver.panorama.prompts import (
    LAYOUT_REFERENCE_GUIDANCE,
    build_panorama_prompt,
    build_refinement_request,
    describe_path_layout,
    get_panorama_dimensions,
)
from roomweaver.panorama.reference import stitched_reference_data_url
from roomweaver.schemas import PanoramaRequest, RoomBase


# Narrative collaborator: request text -> forward-only stream of text chunks
PromptRefiner = Callable[[str], AsyncIterator[str]]


class PanoramaGenerationError(RuntimeError):
    """Raised when a panorama could not be produced for a batch of rooms.

    Recoverable: callers return the rooms without scene art and let the
    presentation layer render the tile layout instead.
    """

    def __init__(self, message: str, *, room_ids: Sequence[str] = ()):
        super().__init__(message)
        self.room_ids = list(room_ids)


class PanoramaCompositor:
    """Compose and submit batched panorama requests.

    Args:
        image_generator: Provider collaborator
        prompt_refiner: Optional narrative model that rewrites the composed
            prompt; its streamed output replaces the prompt
        story_char_budget: Characters of story context embedded in prompts
            (default ``Config.STORY_CONTEXT_CHAR_BUDGET``)
        include_layout_reference: Append a stitched tile-map PNG to the
            reference images as a path guide
    """

    def __init__(
        self,
        image_generator: ImageGenerator,
        *,
        prompt_refiner: Optional[PromptRefiner] = None,
        story_char_budget: int | None = None,
        include_layout_reference: bool = False,
    ):
        self.image_generator = image_generator
        self.prompt_refiner = prompt_refiner
        self.story_char_budget = (
            Config.STORY_CONTEXT_CHAR_BUDGET if story_char_budget is None else story_char_budget
        )
        self.include_layout_reference = include_layout_reference

    def prepare(
        self,
        rooms: Sequence[RoomBase],
        *,
        story_context: str | None = None,
        previous_scene_url: str | None = None,
        use_anchor_image: bool = True,
    ) -> PanoramaRequest:
        """Build the request for ``rooms`` (left to right) without calling anything external.

        Raises:
            ValueError: Room count outside 1-3
            PanoramaGenerationError: The layout reference image could not be rendered
        """

        dimensions = get_panorama_dimensions(len(rooms))
        room_ids = [room.id for room in rooms]
        path_description = describe_path_layout([room.layout for room in rooms])
        prompt = build_panorama_prompt(
            rooms,
            story_context,
            self.story_char_budget,
            path_description=path_description,
        )

        references: List[str] = []
        if use_anchor_image and previous_scene_url:
            references.append(previous_scene_url)

        if self.include_layout_reference:
            try:
                references.append(stitched_reference_data_url([room.layout for room in rooms]))
            except (OSError, ValueError) as exc:
                raise PanoramaGenerationError(
                    f"Could not render layout reference: {exc}", room_ids=room_ids
                ) from exc
            prompt = f"{prompt}\n\n{LAYOUT_REFERENCE_GUIDANCE}"

        return PanoramaRequest(
            room_ids=room_ids,
            path_description=path_description,
            prompt=prompt,
            reference_images=references,
            dimensions=dimensions,
            cache_key=scene_cache_key(prompt, references, dimensions),
        )

    async def refine_prompt(self, prompt: str) -> str:
        if self.prompt_refiner is None:
            return prompt
        refined = await collect_text_stream(self.prompt_refiner(build_refinement_request(prompt)))
        if not refined:
            raise ValueError("Prompt refiner returned no text")
        return refined

    async def generate(self, request: PanoramaRequest) -> ImageResult:
        """Refine the prompt (if configured) and submit one provider request.

        Raises:
            PanoramaGenerationError: Refinement failed, the provider failed,
                or it returned no URL
        """

        dims = request.dimensions
        try:
            prompt = await self.refine_prompt(request.prompt)
        except Exception as exc:
            raise PanoramaGenerationError(
                f"Prompt refinement failed: {exc}", room_ids=request.room_ids
            ) from exc

        log_provider(
            f"Panorama for {', '.join(request.room_ids)}: {dims.aspect_ratio} "
            f"{dims.total_width}x{dims.total_height}, {len(request.reference_images)} reference(s)"
        )
        try:
            result = await self.image_generator.generate(
                ImageRequest(
                    prompt=prompt,
                    target_width=dims.total_width,
                    target_height=dims.total_height,
                    reference_images=list(request.reference_images),
                    aspect_ratio=dims.aspect_ratio,
                )
            )
        except ImageProviderError as exc:
            raise PanoramaGenerationError(
                f"Image provider failed: {exc}", room_ids=request.room_ids
            ) from exc
        except Exception as exc:
            raise PanoramaGenerationError(
                f"Unexpected image provider failure: {exc}", room_ids=request.room_ids
            ) from exc

        if result is None or not result.url:
            raise PanoramaGenerationError(
                "Image provider returned an empty URL", room_ids=request.room_ids
            )

        log_info(f"Panorama ready for {', '.join(request.room_ids)}")
        return result

    async def compose(
        self,
        rooms: Sequence[RoomBase],
        *,
        story_context: str | None = None,
        previous_scene_url: str | None = None,
        use_anchor_image: bool = True,
    ) -> tuple[PanoramaRequest, ImageResult]:
        """``prepare`` followed by ``generate``."""
        request = self.prepare(
            rooms,
            story_context=story_context,
            previous_scene_url=previous_scene_url,
            use_anchor_image=use_anchor_image,
        )
        return request, await self.generate(request)


__all__ = ["PanoramaCompositor", "PanoramaGenerationError", "PromptRefiner"]
