"""
ASR Service Abstract Interface

Contract for speech-to-text providers: given an audio file, return the text
and the engine's confidence in it.
"""
from abc import ABC, abstractmethod
from typing import List, Optional
from dataclasses import dataclass, field


@dataclass
class TranscriptSegment:
    """
    Transcription segment (sentence level)

    Note: Timestamps here are relative time (from audio start), not Unix timestamps
    """
    text: str
    start_sec: float
    end_sec: float
    avg_logprob: Optional[float] = None  # Engine log-probability; basis for confidence

    @property
    def duration_sec(self) -> float:
        return max(self.end_sec - self.start_sec, 0.0)

    def __repr__(self):
        return f"TranscriptSegment(text='{self.text[:30]}...', start={self.start_sec:.2f}s, end={self.end_sec:.2f}s)"


@dataclass
class TranscriptionResult:
    """Complete transcription result"""
    full_text: str
    confidence: Optional[float] = None  # 0-1, None when the engine reports nothing usable
    segments: List[TranscriptSegment] = field(default_factory=list)
    language: Optional[str] = None
    duration_sec: Optional[float] = None

    def speech_analysis(self) -> dict:
        """Summary stored alongside the response."""
        return {
            "engine_language": self.language,
            "audio_duration_sec": self.duration_sec,
            "segment_count": len(self.segments),
        }


class ASRService(ABC):
    """ASR Service Abstract Base Class"""

    @abstractmethod
    async def transcribe(
        self,
        audio_path: str,
        language: Optional[str] = None,
    ) -> TranscriptionResult:
        """
        Transcribe audio file

        Parameters:
        - audio_path: Recording on local storage
        - language: Optional language hint (e.g., "en", "es")
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if service is available"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name (e.g., "OpenAI Whisper API")"""
        pass
