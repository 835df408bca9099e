"""
Services Module

Domain services:
- scoring / text_analysis: pure heuristics used by the models
- session_flow: audit session state machine
- transcription: response recording and transcription outcomes
- insights: insight generation and reports

External speech services:
- ASR (Automatic Speech Recognition): OpenAI Whisper API
- TTS (Text-to-Speech): ElevenLabs (services.tts_elevenlabs)

Only the model-independent ASR interface is re-exported here; the domain
services import the ORM models and are imported by module path.
"""

from .asr_base import (
    ASRService,
    TranscriptionResult,
    TranscriptSegment,
)
from .asr_factory import (
    get_asr_service,
    transcribe_audio,
)
from .asr_openai_adapter import openai_whisper_service

__all__ = [
    "ASRService",
    "TranscriptionResult",
    "TranscriptSegment",
    "get_asr_service",
    "transcribe_audio",
    "openai_whisper_service",
]
