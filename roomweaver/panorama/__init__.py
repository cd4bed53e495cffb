"""Multi-room panorama pipeline: prompt composition, generation and slicing."""

from .compositor import PanoramaCompositor, PanoramaGenerationError, PromptRefiner
from .prompts import (
    build_panorama_prompt,
    describe_path_layout,
    get_panorama_dimensions,
    position_label,
)
from .reference import render_stitched_layouts, stitched_reference_data_url
from .slicer import PanoramaSliceError, slice_image_bytes, slice_panorama

__all__ = [
    "PanoramaCompositor",
    "PanoramaGenerationError",
    "PromptRefiner",
    "build_panorama_prompt",
    "describe_path_layout",
    "get_panorama_dimensions",
    "position_label",
    "render_stitched_layouts",
    "stitched_reference_data_url",
    "PanoramaSliceError",
    "slice_image_bytes",
    "slice_panorama",
]
