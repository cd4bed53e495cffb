"""Cached text-to-speech for NPC dialogue.

The synthesizer itself is an external collaborator; this module only defines
its boundary and keeps repeated lines from being synthesized twice. Lines are
keyed on normalized text plus voice archetype and emotion, so "Hello,
traveler" and "hello,  TRAVELER" share one clip.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Literal, Optional

from pydantic import BaseModel

from roomweaver.cache import AssetCache, speech_cache_key
from roomweaver.logging_utils import log_error, log_provider
from roomweaver.schemas import EntityKind


CharacterArchetype = Literal[
    "hero",
    "villain",
    "merchant",
    "guide",
    "enemy",
    "narrator",
    "mystic",
    "warrior",
    "scholar",
    "trickster",
]
VoiceEmotion = Literal[
    "neutral",
    "happy",
    "sad",
    "angry",
    "fearful",
    "surprised",
    "mysterious",
    "heroic",
    "menacing",
    "friendly",
    "sarcastic",
]

ARCHETYPE_BY_KIND = {
    EntityKind.NPC: "guide",
    EntityKind.ENEMY: "enemy",
}


class SpeechClip(BaseModel):
    url: str
    text: str
    archetype: Optional[str] = None
    emotion: Optional[str] = None
    cached: bool = False


class SpeechSynthesizer(ABC):
    """Abstract text-to-speech collaborator."""

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        *,
        archetype: str | None = None,
        emotion: str | None = None,
    ) -> str:
        """Synthesize ``text`` and return the audio URL."""


def archetype_for_entity(kind: EntityKind) -> str:
    return ARCHETYPE_BY_KIND.get(kind, "guide")


def infer_emotion(text: str, context: str | None = None) -> str:
    """Cheap keyword heuristic for the emotion a line is delivered with."""
    lowered = text.lower()
    if context and ("battle" in context or "combat" in context):
        if any(word in lowered for word in ("die", "kill", "destroy")):
            return "angry"
        return "heroic"
    if "!" in lowered:
        if "no!" in lowered or "stop!" in lowered:
            return "fearful"
        if "what!" in lowered or "how!" in lowered:
            return "surprised"
        return "happy"
    if "?" in lowered and "what" in lowered:
        return "surprised"
    if "..." in lowered or "hmm" in lowered:
        return "mysterious"
    if "haha" in lowered or "hehe" in lowered:
        return "happy"
    return "neutral"


class SpeechService:
    """Synthesize lines through the asset cache.

    Args:
        synthesizer: TTS collaborator
        cache: Cache of audio URLs (``speech`` namespace by default)
    """

    def __init__(self, synthesizer: SpeechSynthesizer, *, cache: AssetCache | None = None):
        self.synthesizer = synthesizer
        self.cache = cache or AssetCache(namespace="speech")

    async def speak(
        self,
        text: str,
        *,
        archetype: str | None = None,
        emotion: str | None = None,
    ) -> Optional[SpeechClip]:
        """Return a clip for ``text``, or None when synthesis failed.

        Raises:
            ValueError: ``text`` is blank
        """
        if not text.strip():
            raise ValueError("Cannot synthesize empty text")

        key = speech_cache_key(text, archetype, emotion)
        cached = await self.cache.get(key)
        if cached:
            return SpeechClip(url=cached, text=text, archetype=archetype, emotion=emotion, cached=True)

        log_provider(f"Synthesizing speech ({archetype or 'default'}): {text[:30]}")
        try:
            url = await self.synthesizer.synthesize(text, archetype=archetype, emotion=emotion)
        except Exception as exc:
            # Speech is optional; dialogue is still shown as text
            log_error(f"Speech synthesis failed: {exc}")
            return None

        if not url:
            log_error("Speech synthesizer returned no URL")
            return None

        await self.cache.set(key, url, identity=archetype or "")
        return SpeechClip(url=url, text=text, archetype=archetype, emotion=emotion)


__all__ = [
    "CharacterArchetype",
    "SpeechClip",
    "SpeechService",
    "SpeechSynthesizer",
    "VoiceEmotion",
    "archetype_for_entity",
    "infer_emotion",
]
