"""Biome library: built-in terrain themes plus persisted custom biomes.

Built-in biomes are the five legacy themes (forest, plains, desert, dungeon,
cave). Custom biomes, usually produced by the LLM from a story, are kept in a
JSON file and override built-ins with the same key. Keys are normalised by
lowercasing and stripping whitespace, so ``"Haunted Forest"`` and
``"hauntedforest"`` name the same biome.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from roomweaver.config import Config
from roomweaver.logging_utils import log_error, log_info, log_success
from roomweaver.schemas import BiomeColors, BiomeDefinition


BiomeGenerator = Callable[[str, str], Awaitable[BiomeDefinition]]


class BiomeGenerationError(RuntimeError):
    """Raised when a missing biome could not be generated."""


BUILTIN_BIOMES: Dict[str, BiomeDefinition] = {
    "forest": BiomeDefinition(
        name="Forest",
        base_tile="grass",
        path_tile="dirt",
        obstacle_tiles=["tree", "bush"],
        colors=BiomeColors(base="#4ade80", path="#92400e", obstacles=["#22c55e", "#16a34a"]),
        atmosphere="dappled sunlight through a dense canopy, mossy roots along a dirt trail",
        path_meander=0.5,
        obstacle_density=0.2,
    ),
    "plains": BiomeDefinition(
        name="Plains",
        base_tile="grass",
        path_tile="path",
        obstacle_tiles=["bush", "flowers", "rock"],
        colors=BiomeColors(
            base="#4ade80", path="#a8a29e", obstacles=["#16a34a", "#f472b6", "#a1a1aa"]
        ),
        atmosphere="open rolling grassland under a wide sky, wildflowers swaying in the wind",
        path_meander=0.4,
        obstacle_density=0.2,
    ),
    "desert": BiomeDefinition(
        name="Desert",
        base_tile="sand",
        path_tile="stone",
        obstacle_tiles=["rock", "bush"],
        colors=BiomeColors(base="#fbbf24", path="#78716c", obstacles=["#a1a1aa", "#16a34a"]),
        atmosphere="scorching dunes and heat shimmer, weathered stones marking an old road",
        path_meander=0.5,
        obstacle_density=0.2,
    ),
    "dungeon": BiomeDefinition(
        name="Dungeon",
        base_tile="floor",
        path_tile="floor",
        obstacle_tiles=["wall"],
        colors=BiomeColors(base="#d6d3d1", path="#d6d3d1", obstacles=["#57534e"]),
        atmosphere="torch-lit stone corridors, damp walls and echoing footsteps",
        path_meander=0.6,
        obstacle_density=0.1,
    ),
    "cave": BiomeDefinition(
        name="Cave",
        base_tile="stone",
        path_tile="floor",
        obstacle_tiles=["wall", "rock"],
        colors=BiomeColors(base="#78716c", path="#d6d3d1", obstacles=["#57534e", "#a1a1aa"]),
        atmosphere="glittering crystal veins in a dark cavern, dripping stalactites overhead",
        path_meander=0.6,
        obstacle_density=0.2,
    ),
}


def normalize_biome_key(key: str) -> str:
    return "".join(key.lower().split())


def biome_for_room_number(room_number: int) -> str:
    """Default biome progression used when a story supplies none."""
    if room_number < 3:
        return "forest"
    if room_number < 6:
        return "plains"
    if room_number < 10:
        return "desert"
    return "dungeon"


class BiomeLibrary:
    """Lookup of biomes by key with optional JSON persistence for custom entries.

    Args:
        custom_path: File holding custom biomes as ``{key: BiomeDefinition}``.
            Defaults to ``Config.BIOMES_FILE``; when that is unset too, custom
            biomes stay in memory only.
        generator: Async callable ``(biome_key, story_context) -> BiomeDefinition``
            used by :meth:`get_or_generate` for unknown keys.
    """

    def __init__(
        self,
        custom_path: Path | str | None = None,
        *,
        generator: Optional[BiomeGenerator] = None,
    ):
        custom_path = custom_path if custom_path is not None else Config.BIOMES_FILE
        self.custom_path = Path(custom_path) if custom_path is not None else None
        self.generator = generator
        self._custom: Dict[str, BiomeDefinition] | None = None

    def _read_custom(self) -> Dict[str, BiomeDefinition]:
        if self.custom_path is None or not self.custom_path.exists():
            return {}
        try:
            raw = json.loads(self.custom_path.read_text("utf-8"))
            return {key: BiomeDefinition.model_validate(value) for key, value in raw.items()}
        except (OSError, ValueError, ValidationError, AttributeError) as exc:
            # A damaged custom file must not take down the built-in library
            log_error(f"Ignoring unreadable custom biome file {self.custom_path}: {exc}")
            return {}

    def _write_custom(self, custom: Dict[str, BiomeDefinition]) -> None:
        if self.custom_path is None:
            return
        self.custom_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {key: biome.model_dump(mode="json") for key, biome in custom.items()}
        self.custom_path.write_text(json.dumps(payload, indent=2), "utf-8")

    async def _load(self) -> Dict[str, BiomeDefinition]:
        if self._custom is None:
            self._custom = await asyncio.to_thread(self._read_custom)
            log_info(
                f"Loaded biome library ({len(BUILTIN_BIOMES)} built-in, {len(self._custom)} custom)"
            )
        return self._custom

    async def get(self, key: str) -> Optional[BiomeDefinition]:
        custom = await self._load()
        normalized = normalize_biome_key(key)
        return custom.get(normalized) or BUILTIN_BIOMES.get(normalized)

    async def save(self, key: str, biome: BiomeDefinition) -> None:
        custom = await self._load()
        normalized = normalize_biome_key(key)
        custom[normalized] = biome
        await asyncio.to_thread(self._write_custom, dict(custom))
        log_success(f"Saved custom biome '{normalized}'")

    async def get_or_generate(self, key: str, story_context: str | None = None) -> BiomeDefinition:
        """Return the biome for ``key``, generating and saving it when unknown.

        Raises:
            BiomeGenerationError: Key is unknown and no generator is configured,
                or the generator failed.
        """
        existing = await self.get(key)
        if existing is not None:
            return existing

        if self.generator is None:
            raise BiomeGenerationError(
                f"Unknown biome '{key}' and no biome generator configured. "
                f"Known biomes: {', '.join(await self.keys())}"
            )

        log_info(f"Biome '{key}' not found, generating from story context")
        try:
            biome = await self.generator(key, story_context or "")
        except Exception as exc:
            raise BiomeGenerationError(f"Failed to generate biome '{key}': {exc}") from exc

        try:
            await self.save(key, biome)
        except OSError as exc:
            log_error(f"Could not persist generated biome '{key}' to {self.custom_path}: {exc}")
        return biome

    async def resolve(self, key: str | None, room_number: int, story_context: str | None = None) -> BiomeDefinition:
        """Biome for a room: explicit key if given, otherwise the default progression."""
        if key:
            return await self.get_or_generate(key, story_context)
        return BUILTIN_BIOMES[biome_for_room_number(room_number)]

    async def keys(self) -> List[str]:
        custom = await self._load()
        return sorted(set(BUILTIN_BIOMES) | set(custom))

    async def stats(self) -> Dict[str, int]:
        custom = await self._load()
        return {
            "total": len(set(BUILTIN_BIOMES) | set(custom)),
            "base": len(BUILTIN_BIOMES),
            "custom": len(custom),
        }

    async def clear_custom(self) -> None:
        self._custom = {}
        if self.custom_path is not None and self.custom_path.exists():
            await asyncio.to_thread(self.custom_path.unlink)
        log_info("Cleared custom biomes")


__all__ = [
    "BUILTIN_BIOMES",
    "BiomeGenerationError",
    "BiomeGenerator",
    "BiomeLibrary",
    "biome_for_room_number",
    "normalize_biome_key",
]
