# speech_audit/schemas/template.py
"""
Pydantic schemas for audit template and question management (admin endpoints).
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from speech_audit.models.question import QuestionType


class QuestionIn(BaseModel):
    """
    Request model for adding a question to a template.
    `sequence` is assigned after the template's last question when omitted.
    """
    text: str
    speechText: Optional[str] = None
    sequence: Optional[int] = None
    questionType: QuestionType = QuestionType.OPEN_ENDED
    maxResponseSeconds: int = 120
    expectedKeywords: Optional[List[str]] = None
    followupPrompts: Optional[List[str]] = None


class TemplateCreateIn(BaseModel):
    name: str
    description: Optional[str] = None
    active: bool = True
    estimatedDurationMinutes: int = 15
    introMessage: Optional[str] = None
    outroMessage: Optional[str] = None
    defaultVoice: Optional[str] = None
    questions: List[QuestionIn] = Field(default_factory=list)


class TemplateUpdateIn(BaseModel):
    """All fields optional - only provided fields are updated."""
    name: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None
    estimatedDurationMinutes: Optional[int] = None
    introMessage: Optional[str] = None
    outroMessage: Optional[str] = None
    defaultVoice: Optional[str] = None


__all__ = ["QuestionIn", "TemplateCreateIn", "TemplateUpdateIn"]
