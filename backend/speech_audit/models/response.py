from enum import Enum
from typing import List, Optional

from tortoise import fields

from speech_audit.models.base import AuditRecord, utc_now
from speech_audit.models.question import Question
from speech_audit.services import scoring
from speech_audit.services.text_analysis import (
    count_words,
    extract_keywords,
    is_blank,
    sentiment,
)

SPOKEN_WORDS_PER_SECOND = 2.5  # ~150 words per minute


class TranscriptionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Response(AuditRecord):
    """
    One answer to one question within a session, unique per (session, question).

    Holds the transcription outcome (text, status, engine confidence) and the
    clarification flag raised when the answer needs a follow-up.
    """
    id = fields.IntField(pk=True)
    session = fields.ForeignKeyField(
        "models.AuditSession", related_name="responses", on_delete=fields.CASCADE
    )
    question = fields.ForeignKeyField(
        "models.Question", related_name="responses", on_delete=fields.CASCADE
    )
    transcribed_text = fields.TextField(null=True)
    transcription_status = fields.CharEnumField(
        TranscriptionStatus, max_length=16, default=TranscriptionStatus.PENDING, index=True
    )
    transcription_confidence = fields.FloatField(null=True)  # Engine's self-reported accuracy, 0-1
    speech_analysis = fields.JSONField(null=True)  # Volume/clarity/pace notes from the speech engine
    requires_clarification = fields.BooleanField(default=False)
    clarification_notes = fields.TextField(null=True)
    original_audio_duration_seconds = fields.IntField(null=True)
    audio_path = fields.CharField(max_length=1024, null=True)  # Uploaded recording on local storage
    responded_at = fields.DatetimeField(null=True, index=True)

    class Meta:
        table = "responses"
        unique_together = (("session", "question"),)

    async def prepare(self) -> None:
        if self.transcription_status is None:
            self.transcription_status = TranscriptionStatus.PENDING
        if self.requires_clarification is None:
            self.requires_clarification = False
        if self.responded_at is None and not is_blank(self.transcribed_text):
            self.responded_at = utc_now()

    async def validate_record(self) -> List[str]:
        errors = []
        if self.transcription_status == TranscriptionStatus.COMPLETED and is_blank(self.transcribed_text):
            errors.append("transcribed_text can't be blank once transcription is completed")
        if self.transcription_confidence is not None and not 0.0 <= self.transcription_confidence <= 1.0:
            errors.append("transcription_confidence must be in [0.0, 1.0]")
        if self.has_audio and self.original_audio_duration_seconds is not None \
                and self.original_audio_duration_seconds <= 0:
            errors.append("original_audio_duration_seconds must be greater than 0")
        return errors

    # ---------- derived values ----------
    @property
    def has_audio(self) -> bool:
        return bool(self.audio_path)

    @property
    def is_completed(self) -> bool:
        return self.transcription_status == TranscriptionStatus.COMPLETED

    @property
    def is_high_confidence(self) -> bool:
        return scoring.is_high_confidence(self.transcription_confidence)

    @property
    def is_low_confidence(self) -> bool:
        return scoring.is_low_confidence(self.transcription_confidence)

    @property
    def word_count(self) -> int:
        return count_words(self.transcribed_text)

    @property
    def character_count(self) -> int:
        return len(self.transcribed_text or "")

    @property
    def duration_in_seconds(self) -> int:
        if self.original_audio_duration_seconds:
            return self.original_audio_duration_seconds
        if is_blank(self.transcribed_text):
            return 0
        return round(self.word_count / SPOKEN_WORDS_PER_SECOND)

    def quality_score(self, question: Optional[Question]) -> int:
        expected = question.expected_keywords if question else None
        return scoring.response_quality_score(self.transcribed_text, self.transcription_confidence, expected)

    async def response_quality_score(self) -> int:
        return self.quality_score(await Question.get_or_none(id=self.question_id))

    def needs_review_given(self, quality: int) -> bool:
        return scoring.needs_review(self.transcription_confidence, self.requires_clarification, quality)

    async def needs_review(self) -> bool:
        return self.needs_review_given(await self.response_quality_score())

    def extract_keywords(self) -> List[str]:
        return extract_keywords(self.transcribed_text)

    def sentiment_analysis(self) -> str:
        return sentiment(self.transcribed_text)
