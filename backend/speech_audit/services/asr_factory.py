"""
ASR entry point for recorded answers.

Resolves the configured engine (OpenAI Whisper API) and the language hint
for a recording before handing it over.
"""
import logging
from pathlib import Path
from typing import Optional

from ..config import settings
from .asr_base import ASRService, TranscriptionResult
from .asr_openai_adapter import openai_whisper_service

logger = logging.getLogger("uvicorn.error")


def get_asr_service() -> ASRService:
    """Return the transcription engine; requires OPENAI_API_KEY in .env."""
    if not openai_whisper_service.is_available():
        raise RuntimeError(
            "OpenAI Whisper API not available. Please configure OPENAI_API_KEY in .env"
        )
    return openai_whisper_service


async def transcribe_audio(
    audio_path: str,
    language: Optional[str] = None,
) -> TranscriptionResult:
    """
    Transcribe a stored answer recording.

    Recordings without a respondent language (anonymous sessions) are hinted
    with DEFAULT_LANGUAGE. A missing file fails before any engine call.
    """
    if not Path(audio_path).is_file():
        raise FileNotFoundError(f"recording not found: {audio_path}")

    service = get_asr_service()
    hint = language or settings.default_language
    logger.info("[asr] %s transcribing %s (language=%s)", service.name, Path(audio_path).name, hint)
    return await service.transcribe(audio_path=audio_path, language=hint)
