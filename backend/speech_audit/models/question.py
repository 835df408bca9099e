from enum import Enum
from typing import List

from tortoise import fields

from speech_audit.models.base import AuditRecord
from speech_audit.services.text_analysis import is_blank, optimize_for_speech

MAX_RESPONSE_SECONDS_LIMIT = 300
SPEECH_CHARS_PER_SECOND = 10.0


class QuestionType(str, Enum):
    OPEN_ENDED = "open_ended"
    YES_NO = "yes_no"
    MULTIPLE_CHOICE = "multiple_choice"
    NUMERIC = "numeric"


_RESPONSE_FORMATS = {
    QuestionType.YES_NO: "Please answer yes or no",
    QuestionType.NUMERIC: "Please provide a number",
    QuestionType.MULTIPLE_CHOICE: "Please choose from the available options",
}


class Question(AuditRecord):
    """
    One prompt within a template, asked in `sequence` order (1-based).
    `speech_text` is what the voice reads; it is derived from `text` when blank.
    """
    id = fields.IntField(pk=True)
    template = fields.ForeignKeyField(
        "models.AuditTemplate", related_name="questions", on_delete=fields.CASCADE
    )
    text = fields.TextField()
    speech_text = fields.TextField(null=True)
    sequence = fields.IntField()
    question_type = fields.CharEnumField(QuestionType, max_length=24, default=QuestionType.OPEN_ENDED)
    max_response_seconds = fields.IntField(default=120)
    expected_keywords = fields.JSONField(null=True)  # list[str]; matched case-insensitively
    followup_prompts = fields.JSONField(null=True)   # list[str]
    audio_path = fields.CharField(max_length=1024, null=True)  # Synthesized speech, when generated

    class Meta:
        table = "questions"
        unique_together = (("template", "sequence"),)
        ordering = ["sequence"]

    async def prepare(self) -> None:
        if self.max_response_seconds is None:
            self.max_response_seconds = 120
        if self.question_type is None:
            self.question_type = QuestionType.OPEN_ENDED
        if self.sequence is None and self.template_id is not None:
            self.sequence = await self.next_sequence_for_template(self.template_id)
        if is_blank(self.speech_text) and not is_blank(self.text):
            self.speech_text = optimize_for_speech(self.text)

    async def validate_record(self) -> List[str]:
        errors = []
        if is_blank(self.text):
            errors.append("text can't be blank")
        if self.sequence is None:
            errors.append("sequence can't be blank")
        if not 0 < (self.max_response_seconds or 0) <= MAX_RESPONSE_SECONDS_LIMIT:
            errors.append(f"max_response_seconds must be in (0, {MAX_RESPONSE_SECONDS_LIMIT}]")
        for name in ("expected_keywords", "followup_prompts"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, list):
                errors.append(f"{name} must be a list")
        return errors

    @staticmethod
    async def next_sequence_for_template(template_id: int) -> int:
        last = await Question.filter(template_id=template_id).order_by("-sequence").first()
        return (last.sequence if last else 0) + 1

    @property
    def speech_optimized_text(self) -> str:
        if not is_blank(self.speech_text):
            return self.speech_text
        return optimize_for_speech(self.text)

    @property
    def expected_response_format(self) -> str:
        return _RESPONSE_FORMATS.get(QuestionType(self.question_type), "Please provide your response")

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_path)

    @property
    def audio_duration(self) -> float:
        """Estimated seconds of synthesized speech (0 until audio exists)."""
        if not self.has_audio:
            return 0
        return round(len(self.speech_optimized_text) / SPEECH_CHARS_PER_SECOND, 1)

    async def next_question(self):
        return await Question.filter(template_id=self.template_id, sequence__gt=self.sequence).order_by("sequence").first()

    async def previous_question(self):
        return await Question.filter(template_id=self.template_id, sequence__lt=self.sequence).order_by("-sequence").first()
