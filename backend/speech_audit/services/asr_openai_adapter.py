"""
OpenAI Whisper API Adapter

Implements the ASR interface on top of the Whisper transcription endpoint.
"""
import math
import os
import httpx
from typing import List, Optional
from .asr_base import ASRService, TranscriptionResult, TranscriptSegment
from ..config import settings

_AUDIO_MIME_TYPES = {
    ".wav": "audio/wav",
    ".webm": "audio/webm",
    ".mp3": "audio/mpeg",
    ".m4a": "audio/mp4",
    ".ogg": "audio/ogg",
}


def segment_confidence(segments: List[TranscriptSegment]) -> Optional[float]:
    """
    Duration-weighted mean of exp(avg_logprob) across segments, in [0, 1].

    Segments without a log-probability are ignored; returns None when no
    segment carries one.
    """
    scored = [s for s in segments if s.avg_logprob is not None]
    if not scored:
        return None
    weights = [s.duration_sec or 1.0 for s in scored]
    total = sum(weights)
    value = sum(math.exp(s.avg_logprob) * w for s, w in zip(scored, weights)) / total
    return max(0.0, min(value, 1.0))


class OpenAIWhisperService(ASRService):
    """OpenAI Whisper API Service"""

    def __init__(self):
        self.api_key = settings.openai_api_key
        self.api_url = settings.whisper_api_url
        self.model = settings.whisper_model

    @property
    def name(self) -> str:
        return "OpenAI Whisper API"

    def is_available(self) -> bool:
        """Check if API key is configured"""
        return bool(self.api_key)

    async def transcribe(
        self,
        audio_path: str,
        language: Optional[str] = None,
    ) -> TranscriptionResult:
        """
        Call OpenAI Whisper API for transcription

        Uses verbose_json format so segment log-probabilities are available
        for the confidence estimate.
        """
        if not self.is_available():
            raise RuntimeError(f"{self.name}: API key not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        data = {
            "model": self.model,
            "response_format": "verbose_json",
            "temperature": 0.0,  # 0 = most deterministic
        }
        if language:
            # Whisper takes ISO-639-1 ("en"), users store locales ("en-US")
            data["language"] = language.split("-")[0]

        ext = os.path.splitext(audio_path)[1].lower()
        mime = _AUDIO_MIME_TYPES.get(ext, "application/octet-stream")

        async with httpx.AsyncClient(timeout=120) as client:
            with open(audio_path, "rb") as f:
                files = {"file": (f"audio{ext or '.wav'}", f, mime)}
                resp = await client.post(self.api_url, headers=headers, data=data, files=files)
            resp.raise_for_status()
            result = resp.json()

        full_text = (result.get("text") or "").strip()
        duration = result.get("duration")

        segments = []
        for seg in result.get("segments") or []:
            segments.append(TranscriptSegment(
                text=(seg.get("text") or "").strip(),
                start_sec=seg.get("start", 0.0),
                end_sec=seg.get("end", 0.0),
                avg_logprob=seg.get("avg_logprob"),
            ))
        if not segments and full_text:
            # No segment information: treat the whole text as one segment
            segments.append(TranscriptSegment(text=full_text, start_sec=0.0, end_sec=duration or 0.0))

        return TranscriptionResult(
            full_text=full_text,
            confidence=segment_confidence(segments),
            segments=segments,
            language=result.get("language"),
            duration_sec=duration,
        )


# Global singleton
openai_whisper_service = OpenAIWhisperService()
