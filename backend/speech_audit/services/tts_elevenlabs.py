import re
import asyncio
import logging
from pathlib import Path
from typing import AsyncGenerator

import httpx

from speech_audit.config import settings  # Use unified config.py settings
from speech_audit.models import Question

logger = logging.getLogger("uvicorn.error")

# ElevenLabs voice IDs are opaque alphanumeric strings; locale-style names
# such as "en-US-Neural2-C" describe a voice but are not IDs
_ELEVENLABS_VOICE_ID = re.compile(r"[A-Za-z0-9]{20}")


def pick_voice_id(voice: str | None) -> str:
    """
    Resolve a stored voice preference to an ElevenLabs voice ID.

    Configuration priority:
    1. The preference itself when it already is an ElevenLabs voice ID
    2. DEFAULT_VOICE_ID from .env / config.py
    """
    if voice and _ELEVENLABS_VOICE_ID.fullmatch(voice):
        return voice
    return settings.default_voice_id


async def _stream_elevenlabs(
    text: str,
    voice_id: str,
    stability: float = 0.75,
    similarity_boost: float = 0.75,
) -> AsyncGenerator[bytes, None]:
    """
    Call ElevenLabs API for streaming TTS

    Parameters:
    - text: Text to synthesize
    - voice_id: ElevenLabs voice ID
    - stability: Stability (0-1), higher = more stable, lower = more expressive
    - similarity_boost: Similarity boost (0-1), similarity to original voice
    """
    if not text or not text.strip():
        logger.info("[tts] skip empty text")
        return
    if not settings.eleven_api_key:
        raise RuntimeError("ELEVENLABS_API_KEY is missing")

    url = f"{settings.eleven_api_base}/text-to-speech/{voice_id}/stream"
    headers = {
        "xi-api-key": settings.eleven_api_key,
        "accept": "audio/mpeg",
        "content-type": "application/json",
    }
    payload = {
        "text": text,
        "model_id": "eleven_turbo_v2_5",
        "output_format": "mp3_44100_64",
        "voice_settings": {
            "stability": stability,
            "similarity_boost": similarity_boost,
        },
    }

    logger.info("[tts] HTTP POST %s voice=%s chars=%d", url, voice_id, len(text))
    async with httpx.AsyncClient(timeout=None) as client:
        async with client.stream("POST", url, headers=headers, json=payload) as resp:
            resp.raise_for_status()
            async for chunk in resp.aiter_bytes():
                if chunk:
                    yield chunk
                await asyncio.sleep(0)


async def synthesize_speech(text: str, voice: str | None = None) -> bytes:
    """Synthesize `text` in full and return MP3 bytes."""
    chunks = []
    async for chunk in _stream_elevenlabs(text=text, voice_id=pick_voice_id(voice)):
        chunks.append(chunk)
    return b"".join(chunks)


async def synthesize_question_audio(question_id: int, voice: str | None = None) -> str | None:
    """
    Render a question's speech text to audio on local storage and record the path.

    Runs as a background task after question creation; failures are logged and
    leave the question without audio.
    """
    question = await Question.get_or_none(id=question_id)
    if question is None:
        return None
    try:
        audio = await synthesize_speech(question.speech_optimized_text, voice)
    except (httpx.HTTPError, RuntimeError) as e:
        logger.warning("[tts] question=%s synthesis failed: %s", question_id, e)
        return None

    if not audio:
        return None
    target_dir = Path(settings.audio_storage_dir) / "questions"
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"question_{question.id}.mp3"
    path.write_bytes(audio)

    question.audio_path = str(path)
    await question.save()
    logger.info("[tts] question=%s audio stored at %s (%d bytes)", question_id, path, len(audio))
    return str(path)
