"""Tests for the biome library."""

from unittest.mock import AsyncMock

import pytest

from roomweaver.config import Config
from roomweaver.environment.biomes import (
    BUILTIN_BIOMES,
    BiomeGenerationError,
    BiomeLibrary,
    biome_for_room_number,
    normalize_biome_key,
)
from roomweaver.schemas import BiomeDefinition


def crystal_biome() -> BiomeDefinition:
    return BiomeDefinition(
        name="Crystal Grotto",
        base_tile="crystal",
        path_tile="floor",
        obstacle_tiles=["cave_wall", "geode"],
        atmosphere="glowing violet crystals",
    )


def test_normalize_biome_key():
    assert normalize_biome_key("  Haunted Forest ") == "hauntedforest"


@pytest.mark.parametrize(
    "room_number, expected",
    [(0, "forest"), (2, "forest"), (3, "plains"), (5, "plains"), (6, "desert"), (9, "desert"), (10, "dungeon")],
)
def test_default_progression(room_number, expected):
    assert biome_for_room_number(room_number) == expected


def test_builtin_dungeon_has_walls():
    assert BUILTIN_BIOMES["dungeon"].has_walls
    assert not BUILTIN_BIOMES["forest"].has_walls


@pytest.mark.asyncio
async def test_get_builtin_case_insensitive():
    library = BiomeLibrary()

    assert (await library.get("FOREST")).name == "Forest"
    assert await library.get("moon base") is None


@pytest.mark.asyncio
async def test_unknown_biome_without_generator_raises():
    with pytest.raises(BiomeGenerationError):
        await BiomeLibrary().get_or_generate("moon base")


@pytest.mark.asyncio
async def test_generated_biome_is_saved_and_reloaded(tmp_path):
    path = tmp_path / "biomes.json"
    generator = AsyncMock(return_value=crystal_biome())
    library = BiomeLibrary(path, generator=generator)

    biome = await library.get_or_generate("Crystal Grotto", "a miner's tale")
    again = await library.get_or_generate("crystal grotto")

    assert biome == again
    generator.assert_awaited_once_with("Crystal Grotto", "a miner's tale")
    assert path.exists()

    reloaded = BiomeLibrary(path)
    assert await reloaded.get("crystalgrotto") == biome
    assert await reloaded.stats() == {"total": 6, "base": 5, "custom": 1}


@pytest.mark.asyncio
async def test_generator_failure_is_wrapped():
    library = BiomeLibrary(generator=AsyncMock(side_effect=RuntimeError("quota exceeded")))

    with pytest.raises(BiomeGenerationError) as excinfo:
        await library.get_or_generate("moon base")

    assert isinstance(excinfo.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_resolve_prefers_explicit_key():
    library = BiomeLibrary()

    assert (await library.resolve("cave", 0)).name == "Cave"
    assert (await library.resolve(None, 7)).name == "Desert"


@pytest.mark.asyncio
async def test_custom_biome_overrides_builtin(tmp_path):
    library = BiomeLibrary(tmp_path / "b.json")
    custom_forest = crystal_biome().model_copy(update={"name": "Dark Forest"})

    await library.save("forest", custom_forest)

    assert (await library.get("forest")).name == "Dark Forest"
    assert "forest" in await library.keys()


@pytest.mark.asyncio
async def test_corrupt_custom_file_is_ignored(tmp_path):
    path = tmp_path / "biomes.json"
    path.write_text("{not json", "utf-8")

    library = BiomeLibrary(path)

    assert await library.keys() == sorted(BUILTIN_BIOMES)


@pytest.mark.asyncio
async def test_clear_custom_removes_file(tmp_path):
    path = tmp_path / "biomes.json"
    library = BiomeLibrary(path)
    await library.save("crystal", crystal_biome())

    await library.clear_custom()

    assert not path.exists()
    assert await library.get("crystal") is None


@pytest.mark.asyncio
async def test_generated_biome_survives_failed_save(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("occupied", "utf-8")
    generator = AsyncMock(return_value=crystal_biome())
    library = BiomeLibrary(blocker / "biomes.json", generator=generator)

    biome = await library.get_or_generate("Crystal Grotto")

    assert biome.name == "Crystal Grotto"
    assert await library.resolve("crystal grotto", 0) == biome
    generator.assert_awaited_once()


@pytest.mark.asyncio
async def test_library_defaults_to_configured_file(tmp_path, monkeypatch):
    path = tmp_path / "configured.json"
    monkeypatch.setattr(Config, "BIOMES_FILE", path)

    library = BiomeLibrary()
    await library.save("crystal", crystal_biome())

    assert library.custom_path == path
    assert path.exists()
    assert BiomeLibrary(custom_path=path).custom_path == path
