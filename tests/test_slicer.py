"""Tests for slicing panoramas into per-room scenes."""

import base64

import pytest

from conftest import BAND_COLORS, band_panorama_bytes, band_panorama_url, scene_center_color, scene_size
from roomweaver.panorama import PanoramaGenerationError, PanoramaSliceError, slice_image_bytes, slice_panorama


def test_three_bands_slice_in_order():
    scenes = slice_image_bytes(band_panorama_bytes(BAND_COLORS), 3, 50, 40)

    assert len(scenes) == 3
    assert [scene_center_color(scene) for scene in scenes] == BAND_COLORS
    assert all(scene_size(scene) == (50, 40) for scene in scenes)


def test_single_room_is_rescaled_whole():
    scenes = slice_image_bytes(band_panorama_bytes([(10, 20, 30)], band_width=125, height=100), 1, 100, 80)

    assert scene_size(scenes[0]) == (100, 80)
    assert scene_center_color(scenes[0]) == (10, 20, 30)


def test_width_not_divisible_by_room_count():
    # 7 bands of 1px across 2 rooms: strip edges round to 0-4 and 4-7
    data = band_panorama_bytes([(255, 0, 0)] * 4 + [(0, 0, 255)] * 3, band_width=1, height=20)

    scenes = slice_image_bytes(data, 2, 10, 10)

    assert [scene_center_color(scene) for scene in scenes] == [(255, 0, 0), (0, 0, 255)]


def test_too_narrow_image_is_rejected():
    data = band_panorama_bytes([(1, 2, 3)], band_width=2, height=10)
    with pytest.raises(ValueError):
        slice_image_bytes(data, 3, 10, 10)


@pytest.mark.asyncio
async def test_slice_panorama_from_data_url():
    scenes = await slice_panorama(band_panorama_url(2), 2, 64, 48)

    assert [scene_center_color(scene) for scene in scenes] == BAND_COLORS[:2]
    assert scene_size(scenes[1]) == (64, 48)


@pytest.mark.asyncio
async def test_slice_panorama_uses_fetcher():
    requested = []

    def fetcher(url: str) -> bytes:
        requested.append(url)
        return band_panorama_bytes(BAND_COLORS)

    scenes = await slice_panorama("https://cdn.example/p.png", 3, 30, 30, fetcher=fetcher)

    assert requested == ["https://cdn.example/p.png"]
    assert scene_center_color(scenes[2]) == BAND_COLORS[2]


@pytest.mark.asyncio
async def test_undecodable_image_raises_slice_error():
    garbage = "data:image/png;base64," + base64.b64encode(b"not an image").decode("ascii")

    with pytest.raises(PanoramaSliceError) as excinfo:
        await slice_panorama(garbage, 2, 10, 10)

    assert isinstance(excinfo.value, PanoramaGenerationError)


@pytest.mark.asyncio
async def test_fetch_failure_raises_slice_error():
    def fetcher(url: str) -> bytes:
        raise OSError("connection reset")

    with pytest.raises(PanoramaSliceError):
        await slice_panorama("https://cdn.example/p.png", 2, 10, 10, fetcher=fetcher)


@pytest.mark.asyncio
async def test_invalid_arguments():
    with pytest.raises(ValueError):
        await slice_panorama(band_panorama_url(1), 0, 10, 10)
    with pytest.raises(PanoramaSliceError):
        await slice_panorama("", 1, 10, 10)
