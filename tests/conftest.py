"""Shared fixtures: synthetic panoramas and a recording image provider."""

from __future__ import annotations

from io import BytesIO
from typing import List, Sequence, Tuple

import pytest
from PIL import Image

from roomweaver.config import Config
from roomweaver.image_provider import (
    ImageGenerator,
    ImageProviderError,
    ImageRequest,
    ImageResult,
    decode_data_url,
    to_data_url,
)

BAND_COLORS: List[Tuple[int, int, int]] = [(255, 0, 0), (0, 255, 0), (0, 0, 255)]


def band_panorama_bytes(colors: Sequence[Tuple[int, int, int]], band_width: int = 100, height: int = 90) -> bytes:
    """PNG with one solid vertical band per colour, left to right."""
    image = Image.new("RGB", (band_width * len(colors), height))
    for index, color in enumerate(colors):
        image.paste(color, (index * band_width, 0, (index + 1) * band_width, height))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def band_panorama_url(count: int) -> str:
    return to_data_url(band_panorama_bytes(BAND_COLORS[:count]))


def scene_center_color(data_url: str) -> Tuple[int, int, int]:
    with Image.open(BytesIO(decode_data_url(data_url))) as img:
        rgb = img.convert("RGB")
        return rgb.getpixel((rgb.width // 2, rgb.height // 2))


def scene_size(data_url: str) -> Tuple[int, int]:
    with Image.open(BytesIO(decode_data_url(data_url))) as img:
        return img.size


class RecordingImageGenerator(ImageGenerator):
    """Returns a colour-band panorama sized to the request's room count."""

    def __init__(self, *, fail_with: Exception | None = None, url: str | None = None):
        self.requests: List[ImageRequest] = []
        self.fail_with = fail_with
        self.url = url

    async def generate(self, request: ImageRequest) -> ImageResult:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        if self.url is not None:
            return ImageResult(url=self.url, prompt=request.prompt)
        rooms = {"5:4": 1, "16:9": 2, "21:9": 3}[request.resolved_aspect_ratio()]
        return ImageResult(url=band_panorama_url(rooms), prompt=request.prompt)


@pytest.fixture(autouse=True)
def _plain_logs(monkeypatch):
    monkeypatch.setenv("ROOMWEAVER_NO_COLOR", "1")


@pytest.fixture(autouse=True)
def _in_memory_biomes(monkeypatch):
    monkeypatch.setattr(Config, "BIOMES_FILE", None)


@pytest.fixture
def image_generator() -> RecordingImageGenerator:
    return RecordingImageGenerator()


@pytest.fixture
def failing_image_generator() -> RecordingImageGenerator:
    return RecordingImageGenerator(fail_with=ImageProviderError("provider is down"))
