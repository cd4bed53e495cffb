"""Cached sprite and interaction-scene generation.

Sprites are small pixel-art images for characters, enemies, NPCs and items.
Every sprite request is keyed on its description, type and biome, so the same
goblin in the same forest is generated once per cache lifetime. When the
provider fails the caller still gets the emoji fallback and can render that.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel

from roomweaver.cache import AssetCache, composed_scene_cache_key, sprite_cache_key
from roomweaver.image_provider import ImageGenerator, ImageProviderError, ImageRequest
from roomweaver.logging_utils import log_error, log_provider, log_success


SpriteType = Literal["character", "enemy", "npc", "item"]

SPRITE_SIZE = 128
SPRITE_STYLE = (
    "pixel art sprite, 32x32 pixels, 16-bit SNES style, retro game aesthetic, "
    "transparent background, isolated sprite, game asset, clean crisp edges, "
    "simple iconic design, top-down view"
)
SPRITE_ROLE_HINTS = {
    "character": "hero character sprite, protagonist",
    "enemy": "antagonist sprite, opponent",
    "npc": "character sprite",
    "item": "item sprite, game object",
}
STORY_SNIPPET_LENGTH = 80

SCENE_WIDTH = 1024
SCENE_HEIGHT = 768


class GeneratedSprite(BaseModel):
    """A sprite URL, or ``None`` when only the emoji fallback is available."""

    url: Optional[str] = None
    fallback_emoji: str
    cached: bool = False


class ComposedScene(BaseModel):
    url: str
    description: str
    cached: bool = False


def build_sprite_prompt(
    description: str,
    sprite_type: SpriteType,
    biome: str | None = None,
    story_context: str | None = None,
) -> str:
    parts = ["pixel art, 32x32, 16-bit style", description.strip(), SPRITE_ROLE_HINTS[sprite_type]]
    if biome:
        parts.append(f"{biome} theme")
    if story_context:
        parts.append(f"themed around: {story_context.strip()[:STORY_SNIPPET_LENGTH]}")
    parts.append(SPRITE_STYLE)
    return ", ".join(parts)


def build_interaction_scene_prompt(description: str, biome: str) -> str:
    return (
        f"{description.strip()}\n\n"
        "Create this scene in 16-bit SNES pixel art style. Include the hero character "
        "and the NPC character from the reference images in the scene as described. "
        f"Set it in a {biome} environment. Top-down RPG perspective, cohesive retro "
        "pixel art aesthetic with detailed environment, atmospheric lighting and depth."
    )


class SpriteService:
    """Generate sprites and composed interaction scenes through the asset cache.

    Args:
        image_generator: Provider collaborator
        sprite_cache: Cache for sprite URLs (``sprite`` namespace by default)
        scene_cache: Cache for composed scenes (``composed`` namespace by default)
    """

    def __init__(
        self,
        image_generator: ImageGenerator,
        *,
        sprite_cache: AssetCache | None = None,
        scene_cache: AssetCache | None = None,
    ):
        self.image_generator = image_generator
        self.sprite_cache = sprite_cache or AssetCache(namespace="sprite")
        self.scene_cache = scene_cache or AssetCache(namespace="composed")

    async def generate_sprite(
        self,
        description: str,
        sprite_type: SpriteType,
        fallback_emoji: str,
        *,
        biome: str | None = None,
        story_context: str | None = None,
    ) -> GeneratedSprite:
        """Return a cached or freshly generated sprite.

        Story context shapes the prompt but not the cache key, so a sprite is
        reused across stories in the same biome.

        Any exception from the image generator is logged and turned into a
        result with ``url=None`` that carries only the fallback emoji.
        """
        key = sprite_cache_key(description, sprite_type, biome)
        cached = await self.sprite_cache.get(key)
        if cached:
            return GeneratedSprite(url=cached, fallback_emoji=fallback_emoji, cached=True)

        prompt = build_sprite_prompt(description, sprite_type, biome, story_context)
        log_provider(f"Generating {sprite_type} sprite: {description}")
        try:
            result = await self.image_generator.generate(
                ImageRequest(prompt=prompt, target_width=SPRITE_SIZE, target_height=SPRITE_SIZE)
            )
        except Exception as exc:
            log_error(f"Sprite generation failed for {sprite_type} '{description}': {exc}")
            return GeneratedSprite(fallback_emoji=fallback_emoji)

        if not result.url:
            log_error(f"Sprite provider returned no URL for {sprite_type} '{description}'")
            return GeneratedSprite(fallback_emoji=fallback_emoji)

        await self.sprite_cache.set(key, result.url, identity=f"{sprite_type}:{description}")
        log_success(f"Generated and cached {sprite_type} sprite")
        return GeneratedSprite(url=result.url, fallback_emoji=fallback_emoji)

    async def compose_interaction_scene(
        self,
        player_sprite_url: str,
        npc_sprite_url: str,
        biome: str,
        description: str,
    ) -> ComposedScene:
        """Render the player and an NPC together in one scene.

        Both sprite URLs are passed as reference images.

        Raises:
            ValueError: A sprite URL is missing
            ImageProviderError: The provider failed or returned no URL
        """
        if not player_sprite_url or not npc_sprite_url:
            raise ValueError("Both player and NPC sprite URLs are required")

        key = composed_scene_cache_key(player_sprite_url, npc_sprite_url, biome, description)
        cached = await self.scene_cache.get(key)
        if cached:
            return ComposedScene(url=cached, description=description, cached=True)

        prompt = build_interaction_scene_prompt(description, biome)
        log_provider(f"Composing interaction scene in {biome}")
        result = await self.image_generator.generate(
            ImageRequest(
                prompt=prompt,
                target_width=SCENE_WIDTH,
                target_height=SCENE_HEIGHT,
                reference_images=[player_sprite_url, npc_sprite_url],
            )
        )
        if not result.url:
            raise ImageProviderError("Interaction scene provider returned no URL")

        await self.scene_cache.set(key, result.url, identity=f"composed:{biome}")
        return ComposedScene(url=result.url, description=description)


__all__ = [
    "ComposedScene",
    "GeneratedSprite",
    "SpriteService",
    "SpriteType",
    "build_interaction_scene_prompt",
    "build_sprite_prompt",
]
