# speech_audit/models/audit_session.py
"""
Database model for audit sessions.
A session is one respondent's pass through a template. It tracks the
1-based question cursor (`current_question_index` counts answered/advanced
questions), lifecycle status and timing. Anonymous respondents address
their session by `session_token`.
"""
import datetime as dt
import uuid
from enum import Enum
from typing import List, Optional

from tortoise import fields

from speech_audit.config import settings
from speech_audit.core.security import generate_session_token
from speech_audit.models.base import AuditRecord, as_utc, utc_now
from speech_audit.models.question import Question
from speech_audit.models.response import Response
from speech_audit.services.scoring import percentage


class SessionStatus(str, Enum):
    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


RESUMABLE_STATUSES = (SessionStatus.STARTED, SessionStatus.IN_PROGRESS)


class AuditSession(AuditRecord):
    """
    Relationships:
    - Belongs to a User (optional; None for anonymous respondents)
    - Belongs to an AuditTemplate
    - Has many Responses and at most one AuditInsight
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    user = fields.ForeignKeyField(
        "models.User", related_name="sessions", null=True, on_delete=fields.CASCADE
    )
    template = fields.ForeignKeyField(
        "models.AuditTemplate", related_name="sessions", on_delete=fields.RESTRICT
    )
    status = fields.CharEnumField(SessionStatus, max_length=16, default=SessionStatus.STARTED, index=True)
    session_token = fields.CharField(max_length=64, unique=True, index=True)
    current_question_index = fields.IntField(default=0)
    preferred_voice = fields.CharField(max_length=64, default=settings.default_voice)
    speech_enabled = fields.BooleanField(default=True)
    started_at = fields.DatetimeField(null=True)
    completed_at = fields.DatetimeField(null=True)

    class Meta:
        table = "audit_sessions"

    async def prepare(self) -> None:
        if not self.session_token:
            self.session_token = await self.generate_token()
        if self.status is None:
            self.status = SessionStatus.STARTED
        if self.current_question_index is None:
            self.current_question_index = 0
        if not self.preferred_voice:
            self.preferred_voice = settings.default_voice
        if self.started_at is None:
            self.started_at = utc_now()

    async def validate_record(self) -> List[str]:
        errors = []
        if self.current_question_index is None or self.current_question_index < 0:
            errors.append("current_question_index must be greater than or equal to 0")
        else:
            total = await self.total_questions()
            if self.current_question_index > total:
                errors.append(f"current_question_index must not exceed {total}")
            elif self.status == SessionStatus.COMPLETED and self.current_question_index != total:
                errors.append("session can only be completed once every question has been reached")
        return errors

    @classmethod
    async def generate_token(cls) -> str:
        while True:
            token = generate_session_token()
            if not await cls.filter(session_token=token).exists():
                return token

    # ---------- status helpers ----------
    @property
    def anonymous(self) -> bool:
        return self.user_id is None

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED

    @property
    def can_be_resumed(self) -> bool:
        return self.status in RESUMABLE_STATUSES

    # ---------- question navigation ----------
    async def total_questions(self) -> int:
        return await Question.filter(template_id=self.template_id).count()

    async def current_question(self) -> Optional[Question]:
        return await Question.get_or_none(
            template_id=self.template_id, sequence=self.current_question_index + 1
        )

    async def next_question(self) -> Optional[Question]:
        return (
            await Question.filter(template_id=self.template_id, sequence__gt=self.current_question_index)
            .order_by("sequence")
            .first()
        )

    async def previous_question(self) -> Optional[Question]:
        if self.current_question_index <= 0:
            return None
        return await Question.get_or_none(
            template_id=self.template_id, sequence=self.current_question_index
        )

    async def can_advance(self) -> bool:
        return self.current_question_index < await self.total_questions()

    # ---------- progress ----------
    async def progress_percentage(self) -> float:
        return percentage(self.current_question_index, await self.total_questions())

    async def questions_remaining(self) -> int:
        return max(await self.total_questions() - self.current_question_index, 0)

    async def completion_rate(self) -> float:
        """Share of the template's questions that have a response (0-100)."""
        answered = await Response.filter(session_id=self.id).count()
        return percentage(answered, await self.total_questions())

    def duration_in_minutes(self, now: Optional[dt.datetime] = None) -> float:
        """Elapsed minutes from start to completion (or to now while open)."""
        if self.started_at is None:
            return 0
        end_time = as_utc(self.completed_at) or now or utc_now()
        return round((end_time - as_utc(self.started_at)).total_seconds() / 60.0, 1)

    async def response_for_question(self, question: Question) -> Optional[Response]:
        return await Response.get_or_none(session_id=self.id, question_id=question.id)

    async def all_questions_answered(self) -> bool:
        question_ids = set(await Question.filter(template_id=self.template_id).values_list("id", flat=True))
        answered = set(await Response.filter(session_id=self.id).values_list("question_id", flat=True))
        return question_ids <= answered

    # ---------- activity ----------
    async def time_since_last_activity(self, now: Optional[dt.datetime] = None) -> Optional[dt.timedelta]:
        latest = (
            await Response.filter(session_id=self.id, responded_at__isnull=False)
            .order_by("-responded_at")
            .first()
        )
        candidates = [
            as_utc(v) for v in (latest.responded_at if latest else None, self.updated_at) if v is not None
        ]
        if not candidates:
            return None
        return (now or utc_now()) - max(candidates)

    async def should_be_abandoned(self, now: Optional[dt.datetime] = None) -> bool:
        if not self.can_be_resumed:
            return False
        idle = await self.time_since_last_activity(now)
        return idle is not None and idle > dt.timedelta(minutes=settings.session_idle_minutes)
