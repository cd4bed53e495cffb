"""
roomweaver Configuration

Loads configuration from environment variables with sensible defaults.
"""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    # Image generation provider (HTTP JSON endpoint)
    IMAGE_PROVIDER_URL: str | None = os.getenv("IMAGE_PROVIDER_URL")
    IMAGE_PROVIDER_API_KEY: str | None = os.getenv("IMAGE_PROVIDER_API_KEY")
    IMAGE_PROVIDER_TIMEOUT_SECONDS: float = float(
        os.getenv("IMAGE_PROVIDER_TIMEOUT_SECONDS", "180")
    )

    # Narrative / biome LLM configuration
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "openai")
    LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-5-nano")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
    ANTHROPIC_API_KEY: str | None = os.getenv("ANTHROPIC_API_KEY")

    # Asset cache
    CACHE_DIR: Path = Path(os.getenv("ROOMWEAVER_CACHE_DIR", ".roomweaver_cache"))
    CACHE_TTL_DAYS: float = float(os.getenv("CACHE_TTL_DAYS", "7"))
    CACHE_MAX_ENTRIES: int = int(os.getenv("CACHE_MAX_ENTRIES", "50"))

    # Viewport every room scene is scaled to
    VIEWPORT_WIDTH: int = int(os.getenv("VIEWPORT_WIDTH", "1000"))
    VIEWPORT_HEIGHT: int = int(os.getenv("VIEWPORT_HEIGHT", "800"))

    # Placement tunables (pixel units)
    PLACEMENT_MIN_DISTANCE: float = float(os.getenv("PLACEMENT_MIN_DISTANCE", "100"))
    PLACEMENT_JITTER: float = float(os.getenv("PLACEMENT_JITTER", "30"))
    PLACEMENT_SPAWN_CLEARANCE: float = float(os.getenv("PLACEMENT_SPAWN_CLEARANCE", "100"))
    PLACEMENT_MAX_ATTEMPTS: int = int(os.getenv("PLACEMENT_MAX_ATTEMPTS", "20"))

    # Characters of story context embedded in panorama prompts
    STORY_CONTEXT_CHAR_BUDGET: int = int(os.getenv("STORY_CONTEXT_CHAR_BUDGET", "300"))

    # Custom biome library file; unset keeps generated biomes in memory only
    BIOMES_FILE: Optional[Path] = (
        Path(os.environ["ROOMWEAVER_BIOMES_FILE"]) if os.getenv("ROOMWEAVER_BIOMES_FILE") else None
    )

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and raise errors if required values are missing."""
        if not cls.IMAGE_PROVIDER_URL:
            raise ValueError(
                "IMAGE_PROVIDER_URL is required to generate scene art. "
                "Point it at an HTTP endpoint accepting {prompt, width, height, image_urls}."
            )

        if cls.LLM_PROVIDER == "openai" and not cls.OPENAI_API_KEY:
            raise ValueError(
                "OPENAI_API_KEY is required when using the 'openai' provider for "
                "biome generation and prompt refinement."
            )

        if cls.LLM_PROVIDER == "anthropic" and not cls.ANTHROPIC_API_KEY:
            raise ValueError(
                "ANTHROPIC_API_KEY is required when using the 'anthropic' provider"
            )

        if cls.CACHE_MAX_ENTRIES < 1:
            raise ValueError("CACHE_MAX_ENTRIES must be at least 1")

    @classmethod
    def cache_ttl_ms(cls) -> int:
        return int(cls.CACHE_TTL_DAYS * 24 * 60 * 60 * 1000)

    @classmethod
    def display(cls) -> str:
        """Return a formatted string showing current configuration."""
        lines = [
            "roomweaver Configuration:",
            f"  Image Provider: {cls.IMAGE_PROVIDER_URL or '(not set)'}",
            f"  LLM Provider: {cls.LLM_PROVIDER}",
            f"  LLM Model: {cls.LLM_MODEL}",
            f"  Cache: {cls.CACHE_DIR} (ttl={cls.CACHE_TTL_DAYS}d, max={cls.CACHE_MAX_ENTRIES})",
            f"  Biomes File: {cls.BIOMES_FILE or '(in memory)'}",
            f"  Viewport: {cls.VIEWPORT_WIDTH}x{cls.VIEWPORT_HEIGHT}",
            f"  Placement: min_distance={cls.PLACEMENT_MIN_DISTANCE}, jitter={cls.PLACEMENT_JITTER}",
        ]
        return "\n".join(lines)
