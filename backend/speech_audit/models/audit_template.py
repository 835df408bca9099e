"""
Database model for audit templates.
A template is a named, ordered set of questions plus the presentation
defaults (voice, intro/outro) used when a session runs it.
"""
from typing import List

from tortoise import fields

from speech_audit.config import settings
from speech_audit.models.audit_session import AuditSession, SessionStatus
from speech_audit.models.base import AuditRecord, as_utc
from speech_audit.models.question import Question
from speech_audit.services.scoring import percentage
from speech_audit.services.text_analysis import is_blank


class AuditTemplate(AuditRecord):
    """
    Relationships:
    - Has many Questions, ordered by sequence (deleted with the template)
    - Has many AuditSessions (a template with sessions cannot be deleted)
    """
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=128, unique=True, index=True)
    description = fields.TextField(null=True)
    active = fields.BooleanField(default=True, index=True)
    estimated_duration_minutes = fields.IntField(default=15)
    intro_message = fields.TextField(null=True)  # Spoken before the first question
    outro_message = fields.TextField(null=True)  # Spoken after completion
    default_voice = fields.CharField(max_length=64, default=settings.default_voice)

    class Meta:
        table = "audit_templates"

    async def prepare(self) -> None:
        if self.active is None:
            self.active = True
        if not self.default_voice:
            self.default_voice = settings.default_voice
        if self.estimated_duration_minutes is None:
            self.estimated_duration_minutes = 15

    async def validate_record(self) -> List[str]:
        errors = []
        if is_blank(self.name):
            errors.append("name can't be blank")
        if (self.estimated_duration_minutes or 0) <= 0:
            errors.append("estimated_duration_minutes must be greater than 0")
        return errors

    async def ordered_questions(self) -> List[Question]:
        return await Question.filter(template_id=self.id).order_by("sequence")

    async def total_questions(self) -> int:
        return await Question.filter(template_id=self.id).count()

    async def average_completion_time(self) -> float:
        """Mean minutes spent on completed sessions; the estimate when there are none."""
        sessions = await AuditSession.filter(
            template_id=self.id,
            status=SessionStatus.COMPLETED,
            started_at__isnull=False,
            completed_at__isnull=False,
        )
        if not sessions:
            return self.estimated_duration_minutes
        total_seconds = sum(
            int((as_utc(s.completed_at) - as_utc(s.started_at)).total_seconds()) for s in sessions
        )
        return round(total_seconds / len(sessions) / 60.0, 1)

    async def completion_rate(self) -> float:
        total = await AuditSession.filter(template_id=self.id).count()
        completed = await AuditSession.filter(template_id=self.id, status=SessionStatus.COMPLETED).count()
        return percentage(completed, total)

    async def next_question_for_session(self, session: AuditSession):
        return (
            await Question.filter(template_id=self.id, sequence__gt=session.current_question_index)
            .order_by("sequence")
            .first()
        )

    async def can_be_deleted(self) -> bool:
        return not await AuditSession.filter(template_id=self.id).exists()
