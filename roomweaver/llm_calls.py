"""
LLM call functions for story-driven content.

This module provides:
- Biome generation for biome keys the library does not know (generate_biome_definition)
- One-line NPC dialogue (generate_npc_interaction_text)
- The default panorama prompt refiner (refine_prompt_stream)

All functions are stateless and accept prompts/config as parameters.
"""

from __future__ import annotations

from typing import AsyncIterator, List

from pydantic import BaseModel, Field

from roomweaver.schemas import BiomeColors, BiomeDefinition
from .llm_utils import call_llm_with_retries, stream_llm_text


BIOME_SYSTEM_PROMPT = """You design terrain themes for a top-down 16-bit exploration game.
Every room is a tile grid crossed by one walkable path. Respond with JSON only."""

NPC_SYSTEM_PROMPT = """You write short, story-relevant lines for characters the player meets
in a top-down exploration game. Respond with JSON only."""

MAX_NPC_TEXT_LENGTH = 120


class BiomeProposal(BaseModel):
    """Structured LLM output for a new biome."""

    name: str = Field(..., min_length=1)
    base_tile: str = Field(..., description="Non-walkable ground tile, e.g. 'grass'")
    path_tile: str = Field(..., description="Walkable path tile, e.g. 'dirt'")
    obstacle_tiles: List[str] = Field(..., min_length=1)
    base_color: str = Field(..., description="Hex colour of the ground")
    path_color: str = Field(..., description="Hex colour of the path")
    obstacle_colors: List[str] = Field(..., min_length=1)
    atmosphere: str = Field(..., description="One sentence of visual mood for image prompts")
    path_meander: float = Field(0.5, ge=0.0, le=1.0)
    obstacle_density: float = Field(0.2, ge=0.0, le=1.0)

    def to_definition(self) -> BiomeDefinition:
        return BiomeDefinition(
            name=self.name,
            base_tile=self.base_tile,
            path_tile=self.path_tile,
            obstacle_tiles=self.obstacle_tiles,
            colors=BiomeColors(
                base=self.base_color, path=self.path_color, obstacles=self.obstacle_colors
            ),
            atmosphere=self.atmosphere,
            path_meander=self.path_meander,
            obstacle_density=self.obstacle_density,
        )


class NpcLine(BaseModel):
    text: str = Field(..., min_length=1, description="One sentence, 10-15 words")


async def generate_biome_definition(
    biome_key: str,
    story_context: str,
    *,
    llm_provider: str | None = None,
    llm_model: str | None = None,
) -> BiomeDefinition:
    """
    Generate a biome for an unknown key, themed on the story.

    Args:
        biome_key: Biome name requested by the story (e.g. "haunted library")
        story_context: Free-text story, may be empty
        llm_provider: LLM provider name (default from Config)
        llm_model: Model identifier (default from Config)

    Returns:
        BiomeDefinition ready to save into the biome library

    Raises:
        Exception: If the LLM call fails or never validates
    """
    story = story_context.strip() or "(no story provided)"
    user_prompt = f"""
Biome requested: {biome_key}

Story context:
{story[:600]}

Design this biome. Use short lowercase tile names. Include at least one obstacle tile;
include a tile containing "wall" only for enclosed interiors (dungeons, caves, buildings).
path_meander is 0-1 (higher = more winding path), obstacle_density is 0-1.
Output JSON matching the BiomeProposal schema.
"""

    proposal = await call_llm_with_retries(
        system_prompt=BIOME_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        llm_provider=llm_provider,
        llm_model=llm_model,
        response_model=BiomeProposal,
    )
    return proposal.to_definition()


def clean_interaction_text(text: str) -> str:
    """First line, unquoted, capped at 120 characters."""
    lines = text.strip().splitlines()
    first = lines[0].strip() if lines else ""
    first = first.strip("\"'")
    return first[:MAX_NPC_TEXT_LENGTH]


async def generate_npc_interaction_text(
    room_number: int,
    story_context: str,
    *,
    llm_provider: str | None = None,
    llm_model: str | None = None,
) -> str:
    """One line of dialogue for an NPC met in ``room_number``."""
    progress = (
        "Just starting the journey" if room_number == 0 else f"{room_number} rooms into the adventure"
    )
    user_prompt = f"""
Story context: {story_context[:600]}
Player progress: {progress}

Write a brief interaction text (one sentence, 10-15 words) for encountering a character
that fits this story. Make it intriguing so the player wants to interact.
Output JSON matching the NpcLine schema.
"""

    line = await call_llm_with_retries(
        system_prompt=NPC_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        llm_provider=llm_provider,
        llm_model=llm_model,
        response_model=NpcLine,
    )
    return clean_interaction_text(line.text)


def refine_prompt_stream(prompt: str) -> AsyncIterator[str]:
    """Default ``PromptRefiner``: stream the configured model's rewrite of ``prompt``."""
    return stream_llm_text(prompt)
