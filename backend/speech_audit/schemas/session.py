# speech_audit/schemas/session.py
"""
Pydantic schemas for audit sessions and their responses.
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class StartSessionIn(BaseModel):
    templateId: int
    preferredVoice: Optional[str] = None
    speechEnabled: Optional[bool] = None


class TextAnswerIn(BaseModel):
    """
    An answer already transcribed by the client's speech engine.
    """
    text: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    speechAnalysis: Optional[Dict[str, Any]] = None
    audioDurationSeconds: Optional[int] = None


class ClarificationIn(BaseModel):
    notes: Optional[str] = None


__all__ = ["StartSessionIn", "TextAnswerIn", "ClarificationIn"]
