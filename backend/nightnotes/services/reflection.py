from __future__ import annotations
import logging
from typing import Optional

from nightnotes.config import DREAM_MOODS, DREAM_REFLECTION_SYSTEM_PROMPT, REFLECTION_MAX_TOKENS
from nightnotes.errors import ValidationError
from nightnotes.services.llm_client import TextGenerator

logger = logging.getLogger(__name__)


def build_dream_message(dream: str, mood: Optional[str] = None) -> str:
    message = f"Dream: {dream.strip()}"
    if mood:
        message += f"\n\nMood upon waking: {mood}"
    message += "\n\nProvide a gentle, reflective interpretation of this dream."
    return message


def validate_dream(dream: Optional[str], mood: Optional[str] = None) -> None:
    if not dream or not dream.strip():
        raise ValidationError("Please describe your dream first.")
    if mood is not None and mood not in DREAM_MOODS:
        raise ValidationError(f"Mood must be one of: {', '.join(DREAM_MOODS)}.")


async def reflect_on_dream(generator: TextGenerator, dream: Optional[str], mood: Optional[str] = None) -> str:
    """Single upstream call; the generated prose is returned untouched."""
    validate_dream(dream, mood)

    return await generator.complete(
        DREAM_REFLECTION_SYSTEM_PROMPT,
        build_dream_message(dream, mood),
        max_tokens=REFLECTION_MAX_TOKENS,
    )
