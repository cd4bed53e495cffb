"""Image generation provider interface and an HTTP implementation.

The pipeline only needs one capability from a provider: turn a prompt (plus
optional reference images) into the URL of a generated image. Anything that
implements ``ImageGenerator`` works, which keeps tests free of network access.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import http.client
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List
from urllib import error, parse, request

from pydantic import BaseModel, Field

from roomweaver.config import Config
from roomweaver.logging_utils import log_provider


class ImageProviderError(RuntimeError):
    """Raised when the image provider fails or returns an unusable response."""


SUPPORTED_ASPECT_RATIOS: Dict[str, float] = {
    "21:9": 21 / 9,
    "16:9": 16 / 9,
    "5:4": 5 / 4,
    "4:3": 4 / 3,
    "3:2": 3 / 2,
    "1:1": 1.0,
    "2:3": 2 / 3,
    "3:4": 3 / 4,
    "4:5": 4 / 5,
    "9:16": 9 / 16,
}


def closest_aspect_ratio(width: int, height: int) -> str:
    """Map arbitrary dimensions onto the nearest ratio the provider accepts."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Dimensions must be positive, got {width}x{height}")
    ratio = width / height
    return min(SUPPORTED_ASPECT_RATIOS, key=lambda name: abs(ratio - SUPPORTED_ASPECT_RATIOS[name]))


class ImageRequest(BaseModel):
    """One image generation call."""

    prompt: str = Field(..., min_length=1)
    target_width: int = Field(..., gt=0)
    target_height: int = Field(..., gt=0)
    reference_images: List[str] = Field(
        default_factory=list,
        description="Image URLs or data URLs, most important first",
    )
    aspect_ratio: str | None = Field(
        None, description="Provider aspect ratio; derived from the target size when omitted"
    )

    def resolved_aspect_ratio(self) -> str:
        return self.aspect_ratio or closest_aspect_ratio(self.target_width, self.target_height)


class ImageResult(BaseModel):
    url: str
    prompt: str = ""


class ImageGenerator(ABC):
    """Abstract image generation collaborator."""

    @abstractmethod
    async def generate(self, request: ImageRequest) -> ImageResult:
        """Generate one image.

        Raises:
            ImageProviderError: Provider failed or returned no image
        """


def _extract_image_url(parsed: Any) -> str | None:
    if not isinstance(parsed, dict):
        return None
    images = parsed.get("images")
    if isinstance(images, list) and images:
        first = images[0]
        if isinstance(first, dict) and first.get("url"):
            return str(first["url"])
        if isinstance(first, str) and first:
            return first
    url = parsed.get("url")
    return str(url) if url else None


def _perform_generation_request(
    payload: dict[str, Any],
    endpoint: str,
    api_key: str | None,
    timeout: float,
) -> str:
    """Execute the blocking HTTP request against the provider endpoint."""

    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if api_key:
        headers["Authorization"] = f"Key {api_key}"

    req = request.Request(
        endpoint,
        data=json.dumps(payload).encode("utf-8"),
        headers=headers,
        method="POST",
    )

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        message = body or exc.reason
        raise ImageProviderError(
            f"Image generation request failed with status {exc.code}: {message}"
        ) from exc
    except error.URLError as exc:
        raise ImageProviderError(
            f"Could not reach image provider at {endpoint}: {exc.reason}"
        ) from exc
    except TimeoutError as exc:
        raise ImageProviderError(
            f"Image provider at {endpoint} timed out after {timeout}s"
        ) from exc
    except (http.client.HTTPException, OSError, UnicodeDecodeError) as exc:
        # Truncated bodies surface as http.client.IncompleteRead
        raise ImageProviderError(
            f"Image provider at {endpoint} returned an unreadable response: {exc!r}"
        ) from exc

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ImageProviderError("Image provider returned non-JSON response.") from exc

    url = _extract_image_url(parsed)
    if not url:
        raise ImageProviderError("Image provider response did not include an image URL.")
    return url


class HttpImageGenerator(ImageGenerator):
    """Posts generation requests as JSON to an HTTP endpoint.

    Request body: ``{prompt, image_urls, aspect_ratio, width, height, num_images}``.
    The response must carry the image at ``images[0].url`` or ``url``.
    """

    def __init__(
        self,
        endpoint: str | None = None,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
    ):
        resolved = endpoint or Config.IMAGE_PROVIDER_URL
        if not resolved:
            raise ValueError(
                "No image provider endpoint configured. Pass endpoint= or set IMAGE_PROVIDER_URL."
            )
        self.endpoint = resolved
        self.api_key = api_key if api_key is not None else Config.IMAGE_PROVIDER_API_KEY
        self.timeout = timeout if timeout is not None else Config.IMAGE_PROVIDER_TIMEOUT_SECONDS

    def build_payload(self, image_request: ImageRequest) -> dict[str, Any]:
        return {
            "prompt": image_request.prompt,
            "image_urls": list(image_request.reference_images),
            "aspect_ratio": image_request.resolved_aspect_ratio(),
            "width": image_request.target_width,
            "height": image_request.target_height,
            "num_images": 1,
        }

    async def generate(self, request: ImageRequest) -> ImageResult:
        payload = self.build_payload(request)
        log_provider(
            f"Generating {request.target_width}x{request.target_height} image "
            f"({payload['aspect_ratio']}, {len(request.reference_images)} reference(s))"
        )
        url = await asyncio.to_thread(
            _perform_generation_request,
            payload,
            self.endpoint,
            self.api_key,
            self.timeout,
        )
        return ImageResult(url=url, prompt=request.prompt)


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(url: str) -> bytes:
    """Decode a ``data:`` URL (base64 or percent-encoded)."""
    header, sep, body = url.partition(",")
    if not sep or not header.startswith("data:"):
        raise ValueError("Malformed data URL")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(body, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload in data URL: {exc}") from exc
    return parse.unquote_to_bytes(body)


def fetch_image_bytes(url: str, timeout: float = 60.0) -> bytes:
    """Load image bytes from a data URL, http(s) URL, ``file://`` URL or local path.

    Blocking; async callers run it through ``asyncio.to_thread``.

    Raises:
        ValueError: Malformed data URL
        ImageProviderError: Remote fetch failed
        OSError: Local file could not be read
    """

    if url.startswith("data:"):
        return decode_data_url(url)

    scheme = parse.urlparse(url).scheme
    if scheme in ("http", "https"):
        try:
            with request.urlopen(url, timeout=timeout) as resp:
                return resp.read()
        except error.HTTPError as exc:
            raise ImageProviderError(f"Fetching {url} failed with status {exc.code}") from exc
        except error.URLError as exc:
            raise ImageProviderError(f"Could not fetch {url}: {exc.reason}") from exc
        except (http.client.HTTPException, OSError) as exc:
            raise ImageProviderError(f"Download of {url} was interrupted: {exc!r}") from exc

    if scheme == "file":
        return Path(request.url2pathname(parse.urlparse(url).path)).read_bytes()

    return Path(url).read_bytes()


__all__ = [
    "HttpImageGenerator",
    "ImageGenerator",
    "ImageProviderError",
    "ImageRequest",
    "ImageResult",
    "SUPPORTED_ASPECT_RATIOS",
    "closest_aspect_ratio",
    "decode_data_url",
    "fetch_image_bytes",
    "to_data_url",
]
