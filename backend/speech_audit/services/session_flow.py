"""
Audit session lifecycle.

    started --advance--> in_progress --advance (last question)--> completed
    started / in_progress --abandon--> abandoned
    any --restart--> started (responses and insight discarded)

Completion generates the session's insight with a direct awaited call.
"""
import datetime as dt
import logging
from typing import Optional

from speech_audit.config import settings
from speech_audit.core.errors import SessionStateError
from speech_audit.models import (
    AuditInsight,
    AuditSession,
    AuditTemplate,
    Response,
    SessionStatus,
    User,
)
from speech_audit.models.audit_session import RESUMABLE_STATUSES
from speech_audit.models.base import utc_now
from speech_audit.services import insights

logger = logging.getLogger("uvicorn.error")


async def start_session(
    template: AuditTemplate,
    user: Optional[User] = None,
    preferred_voice: Optional[str] = None,
    speech_enabled: Optional[bool] = None,
) -> AuditSession:
    """Open a new session; voice and speech defaults come from the user, then the template."""
    if not template.active:
        raise SessionStateError("TEMPLATE_INACTIVE", "Template is not accepting new sessions")

    voice = preferred_voice or (user.preferred_voice if user else None) or template.default_voice
    if speech_enabled is None:
        speech_enabled = user.speech_enabled if user is not None else True

    session = await AuditSession.create(
        user=user,
        template=template,
        status=SessionStatus.STARTED,
        current_question_index=0,
        preferred_voice=voice or settings.default_voice,
        speech_enabled=speech_enabled,
        started_at=utc_now(),
    )
    logger.info("[session] started %s template=%s user=%s", session.id, template.id, user.id if user else None)
    return session


async def advance_to_next_question(session: AuditSession) -> bool:
    """
    Move the cursor forward one question.

    Returns False (and changes nothing) when the session is not resumable or
    every question has already been reached. Reaching the last question
    completes the session.
    """
    if not session.can_be_resumed or not await session.can_advance():
        return False

    session.current_question_index += 1
    if session.status == SessionStatus.STARTED:
        session.status = SessionStatus.IN_PROGRESS
    await session.save()

    if session.current_question_index >= await session.total_questions():
        await complete_session(session)
    return True


async def complete_session(session: AuditSession) -> Optional[AuditInsight]:
    """Mark the session completed, stamp the user's last audit, and generate the insight."""
    total = await session.total_questions()
    if session.current_question_index != total:
        raise SessionStateError(
            "SESSION_INCOMPLETE",
            f"Session is at question {session.current_question_index} of {total}",
        )

    session.status = SessionStatus.COMPLETED
    session.completed_at = utc_now()
    await session.save()

    if session.user_id is not None:
        await User.filter(id=session.user_id).update(last_audit_at=session.completed_at)

    logger.info("[session] completed %s in %s minutes", session.id, session.duration_in_minutes())
    if await AuditInsight.filter(session_id=session.id).exists():
        return await insights.regenerate_for_session(session)
    return await insights.generate_for_session(session)


async def abandon_session(session: AuditSession) -> None:
    if not session.can_be_resumed:
        raise SessionStateError("SESSION_NOT_ACTIVE", f"Cannot abandon a {session.status.value} session")
    session.status = SessionStatus.ABANDONED
    await session.save()
    logger.info("[session] abandoned %s at question %d", session.id, session.current_question_index)


async def restart_session(session: AuditSession) -> None:
    """Return to the first question, discarding previous answers and the insight."""
    await Response.filter(session_id=session.id).delete()
    await AuditInsight.filter(session_id=session.id).delete()
    session.status = SessionStatus.STARTED
    session.current_question_index = 0
    session.started_at = utc_now()
    session.completed_at = None
    await session.save()
    logger.info("[session] restarted %s", session.id)


async def cleanup_abandoned_sessions(now: Optional[dt.datetime] = None) -> int:
    """Abandon resumable sessions with no update inside the cleanup window."""
    cutoff = (now or utc_now()) - dt.timedelta(hours=settings.session_cleanup_hours)
    stale = await AuditSession.filter(status__in=list(RESUMABLE_STATUSES), updated_at__lt=cutoff)
    for session in stale:
        await abandon_session(session)
    if stale:
        logger.info("[session] sweep abandoned %d stale sessions (cutoff=%s)", len(stale), cutoff.isoformat())
    return len(stale)


async def session_state(session: AuditSession) -> dict:
    """Progress snapshot returned by the session endpoints."""
    question = await session.current_question()
    return {
        "sessionToken": session.session_token,
        "id": str(session.id),
        "templateId": session.template_id,
        "status": session.status.value,
        "anonymous": session.anonymous,
        "currentQuestionIndex": session.current_question_index,
        "totalQuestions": await session.total_questions(),
        "questionsRemaining": await session.questions_remaining(),
        "progressPercentage": await session.progress_percentage(),
        "completionRate": await session.completion_rate(),
        "durationMinutes": session.duration_in_minutes(),
        "preferredVoice": session.preferred_voice,
        "speechEnabled": session.speech_enabled,
        "startedAt": session.started_at.isoformat() if session.started_at else None,
        "completedAt": session.completed_at.isoformat() if session.completed_at else None,
        "currentQuestion": question_payload(question) if question else None,
    }


def question_payload(question) -> dict:
    return {
        "id": question.id,
        "sequence": question.sequence,
        "text": question.text,
        "speechText": question.speech_optimized_text,
        "questionType": question.question_type.value,
        "expectedResponseFormat": question.expected_response_format,
        "maxResponseSeconds": question.max_response_seconds,
        "followupPrompts": question.followup_prompts or [],
        "hasAudio": question.has_audio,
    }
