# speech_audit/models/user.py
"""
Database model for users.
Represents a registered respondent, holding contact details, credentials,
role-based access control and the speech defaults copied onto new sessions.
"""
import re
import uuid
from typing import List

from tortoise import fields

from speech_audit.config import settings
from speech_audit.models.audit_session import AuditSession, SessionStatus
from speech_audit.models.base import AuditRecord, as_utc

EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*"
)


class User(AuditRecord):
    """
    User database model.

    Relationships:
    - Has many AuditSessions (one-to-many, via related_name="sessions")

    Security:
    - Password is stored as an Argon2 hash; users created without credentials
      (seeded, imported) have no hash and cannot log in
    - Email must be unique across all users
    """
    id = fields.UUIDField(pk=True, default=uuid.uuid4)
    email = fields.CharField(max_length=256, unique=True, index=True)  # Login identity
    name = fields.CharField(max_length=128)
    password_hash = fields.CharField(max_length=255, null=True)
    role = fields.CharField(max_length=16, default="user")  # "user" or "admin"
    preferred_language = fields.CharField(max_length=8, default=settings.default_language)
    preferred_voice = fields.CharField(max_length=64, default=settings.default_voice)
    speech_enabled = fields.BooleanField(default=True)
    last_audit_at = fields.DatetimeField(null=True)  # Set whenever one of the user's sessions completes

    class Meta:
        table = "users"

    async def prepare(self) -> None:
        if self.email:
            self.email = self.email.strip().lower()
        if not self.preferred_voice:
            self.preferred_voice = settings.default_voice
        if not self.preferred_language:
            self.preferred_language = settings.default_language

    async def validate_record(self) -> List[str]:
        errors = []
        if not self.email:
            errors.append("email can't be blank")
        elif not EMAIL_PATTERN.fullmatch(self.email):
            errors.append("email is invalid")
        if not (self.name or "").strip():
            errors.append("name can't be blank")
        if self.preferred_language not in settings.supported_languages:
            errors.append(f"preferred_language {self.preferred_language!r} is not supported")
        return errors

    @property
    def full_name(self) -> str:
        if self.name:
            return self.name
        local = self.email.split("@")[0]
        return local.replace("_", " ").capitalize()

    async def completed_audits_count(self) -> int:
        return await AuditSession.filter(user_id=self.id, status=SessionStatus.COMPLETED).count()

    async def average_audit_duration(self) -> float:
        """Mean wall-clock minutes across this user's completed sessions (0 when none)."""
        sessions = await AuditSession.filter(
            user_id=self.id,
            status=SessionStatus.COMPLETED,
            started_at__isnull=False,
            completed_at__isnull=False,
        )
        if not sessions:
            return 0
        total_seconds = sum(
            int((as_utc(s.completed_at) - as_utc(s.started_at)).total_seconds()) for s in sessions
        )
        return total_seconds / len(sessions) / 60.0

    async def recent_audit_sessions(self, limit: int = 10):
        return (
            await AuditSession.filter(user_id=self.id)
            .prefetch_related("template")
            .order_by("-started_at")
            .limit(limit)
        )
