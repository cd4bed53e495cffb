"""Cut a generated panorama back into per-room scene textures.

The panorama is split into ``N`` equal-width vertical strips, left to right,
and each strip is rescaled to the room viewport. The output order is the
order the rooms were given to the compositor; the orchestrator attaches
slices to rooms by index and relies on it.
"""

from __future__ import annotations

import asyncio
import http.client
from io import BytesIO
from typing import Callable, List

from PIL import Image

from roomweaver.config import Config
from roomweaver.image_provider import ImageProviderError, fetch_image_bytes, to_data_url
from roomweaver.logging_utils import log_deterministic
from roomweaver.panorama.compositor import PanoramaGenerationError


class PanoramaSliceError(PanoramaGenerationError):
    """Raised when a panorama cannot be fetched, decoded or sliced."""


ImageFetcher = Callable[[str], bytes]


def slice_image_bytes(
    data: bytes,
    num_rooms: int,
    target_width: int,
    target_height: int,
) -> List[str]:
    """Slice encoded image bytes into ``num_rooms`` PNG data URLs."""

    with Image.open(BytesIO(data)) as img:
        img.load()
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        width, height = img.size
        slice_width = width / num_rooms
        if slice_width < 1:
            raise ValueError(f"Panorama is {width}px wide, too narrow for {num_rooms} slices")

        log_deterministic(
            f"Slicing {width}x{height} panorama into {num_rooms} x {slice_width:.0f}px strips "
            f"scaled to {target_width}x{target_height}"
        )

        scenes: List[str] = []
        for index in range(num_rooms):
            # (left, top, right, bottom); rounding keeps strips contiguous
            box = (round(index * slice_width), 0, round((index + 1) * slice_width), height)
            strip = img.crop(box).resize((target_width, target_height), Image.Resampling.LANCZOS)
            buffer = BytesIO()
            strip.save(buffer, format="PNG")
            scenes.append(to_data_url(buffer.getvalue()))
        return scenes


async def slice_panorama(
    image_url: str,
    num_rooms: int,
    target_width: int | None = None,
    target_height: int | None = None,
    *,
    fetcher: ImageFetcher = fetch_image_bytes,
) -> List[str]:
    """Fetch and slice a panorama.

    Args:
        image_url: Provider URL, data URL or local path of the panorama
        num_rooms: Number of equal-width strips (rooms in the batch)
        target_width: Viewport width of each scene (default ``Config.VIEWPORT_WIDTH``)
        target_height: Viewport height of each scene (default ``Config.VIEWPORT_HEIGHT``)
        fetcher: Blocking callable returning the image bytes for a URL

    Returns:
        ``num_rooms`` PNG data URLs, left to right

    Raises:
        ValueError: Invalid room count or viewport size
        PanoramaSliceError: The image could not be fetched or decoded
    """

    if num_rooms < 1:
        raise ValueError(f"num_rooms must be >= 1, got {num_rooms}")
    target_width = target_width or Config.VIEWPORT_WIDTH
    target_height = target_height or Config.VIEWPORT_HEIGHT
    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Viewport must be positive, got {target_width}x{target_height}")
    if not image_url:
        raise PanoramaSliceError("Panorama URL is empty")

    try:
        data = await asyncio.to_thread(fetcher, image_url)
    except (OSError, ValueError, http.client.HTTPException, ImageProviderError) as exc:
        raise PanoramaSliceError(f"Failed to load panorama image: {exc}") from exc

    try:
        return await asyncio.to_thread(
            slice_image_bytes, data, num_rooms, target_width, target_height
        )
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        # UnidentifiedImageError is an OSError
        raise PanoramaSliceError(f"Failed to decode panorama image: {exc}") from exc


__all__ = ["ImageFetcher", "PanoramaSliceError", "slice_image_bytes", "slice_panorama"]
