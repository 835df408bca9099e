import datetime as dt

import pytest

from speech_audit.core.errors import SessionStateError
from speech_audit.models import AuditInsight, AuditSession, Response, SessionStatus, User
from speech_audit.models.base import utc_now
from speech_audit.services import session_flow, transcription

ANSWER_100_WORDS = " ".join(["word"] * 100)


pytestmark = pytest.mark.asyncio


async def test_start_session_uses_user_then_template_defaults(db, create_user, create_template):
    template = await create_template(count=2, default_voice="en-GB-Voice")
    user, _ = await create_user(preferred_voice="en-US-Custom", speech_enabled=False)

    owned = await session_flow.start_session(template, user=user)
    assert owned.user_id == user.id
    assert owned.preferred_voice == "en-US-Custom"
    assert owned.speech_enabled is False
    assert owned.status == SessionStatus.STARTED

    anonymous = await session_flow.start_session(template)
    assert anonymous.anonymous is True
    assert anonymous.preferred_voice == "en-GB-Voice"
    assert anonymous.speech_enabled is True

    explicit = await session_flow.start_session(template, preferred_voice="other", speech_enabled=False)
    assert explicit.preferred_voice == "other"
    assert explicit.speech_enabled is False


async def test_inactive_template_cannot_start(db, create_template):
    template = await create_template(count=1, active=False)
    with pytest.raises(SessionStateError) as exc:
        await session_flow.start_session(template)
    assert exc.value.code == "TEMPLATE_INACTIVE"


async def test_advancing_through_every_question_completes_and_generates_insight(db, create_user, create_template):
    template = await create_template(count=2)
    user, _ = await create_user()
    session = await session_flow.start_session(template, user=user)

    for _ in range(2):
        _, response = await transcription.response_for_current_question(session)
        advanced = await transcription.process_transcription(response, ANSWER_100_WORDS, confidence=0.9)
        assert advanced is True
        await session.refresh_from_db()

    assert session.status == SessionStatus.COMPLETED
    assert session.current_question_index == 2
    assert session.completed_at is not None
    assert await session.completion_rate() == 100.0
    assert await session.all_questions_answered() is True

    insight = await AuditInsight.get(session_id=session.id)
    # completion 100 * 0.4 + quality 86 * 0.4 + confidence 90 * 0.2
    assert insight.overall_score == pytest.approx(92.4)
    assert 85 <= insight.overall_score <= 95
    assert insight.confidence_level.value == "high"
    assert insight.risk_indicators == []
    assert insight.summary.startswith(f"Completed {template.name} audit with 2 responses")
    assert "Overall compliance appears strong with 0 items requiring follow-up." in insight.summary

    refreshed_user = await User.get(id=user.id)
    assert refreshed_user.last_audit_at is not None
    assert await refreshed_user.completed_audits_count() == 1

    # Nothing left to advance to
    assert await session_flow.advance_to_next_question(session) is False


async def test_advance_moves_started_to_in_progress(db, create_template):
    template = await create_template(count=3)
    session = await session_flow.start_session(template)

    assert await session_flow.advance_to_next_question(session) is True
    assert session.status == SessionStatus.IN_PROGRESS
    assert session.current_question_index == 1
    assert await session.progress_percentage() == 33.3


async def test_complete_session_requires_every_question_reached(db, create_template):
    template = await create_template(count=2)
    session = await session_flow.start_session(template)
    with pytest.raises(SessionStateError) as exc:
        await session_flow.complete_session(session)
    assert exc.value.code == "SESSION_INCOMPLETE"


async def test_abandon_and_restart(db, create_template):
    template = await create_template(count=2)
    session = await session_flow.start_session(template)
    _, response = await transcription.response_for_current_question(session)
    await transcription.process_transcription(response, ANSWER_100_WORDS, confidence=0.9)
    await session.refresh_from_db()

    await session_flow.abandon_session(session)
    assert session.status == SessionStatus.ABANDONED
    assert session.can_be_resumed is False
    assert await session_flow.advance_to_next_question(session) is False
    with pytest.raises(SessionStateError):
        await session_flow.abandon_session(session)

    await session_flow.restart_session(session)
    assert session.status == SessionStatus.STARTED
    assert session.current_question_index == 0
    assert session.completed_at is None
    assert await Response.filter(session_id=session.id).count() == 0


async def test_restart_completed_session_discards_insight(db, create_template):
    template = await create_template(count=1)
    session = await session_flow.start_session(template)
    await session_flow.advance_to_next_question(session)
    assert await AuditInsight.filter(session_id=session.id).exists()

    await session_flow.restart_session(session)
    assert not await AuditInsight.filter(session_id=session.id).exists()

    # Completing again produces a fresh insight
    await session_flow.advance_to_next_question(session)
    assert await AuditInsight.filter(session_id=session.id).count() == 1


async def test_idle_sessions_are_swept(db, create_template):
    template = await create_template(count=2)
    idle = await session_flow.start_session(template)
    done = await session_flow.start_session(template)
    await session_flow.advance_to_next_question(done)
    await session_flow.advance_to_next_question(done)

    assert await session_flow.cleanup_abandoned_sessions(now=utc_now()) == 0

    later = utc_now() + dt.timedelta(hours=25)
    assert await idle.should_be_abandoned(now=later) is True
    assert await done.should_be_abandoned(now=later) is False
    assert await session_flow.cleanup_abandoned_sessions(now=later) == 1

    assert (await AuditSession.get(id=idle.id)).status == SessionStatus.ABANDONED
    assert (await AuditSession.get(id=done.id)).status == SessionStatus.COMPLETED


async def test_session_state_snapshot(db, create_template):
    template = await create_template(count=2)
    session = await session_flow.start_session(template)
    state = await session_flow.session_state(session)

    assert state["sessionToken"] == session.session_token
    assert state["status"] == "started"
    assert state["anonymous"] is True
    assert state["totalQuestions"] == 2
    assert state["questionsRemaining"] == 2
    assert state["progressPercentage"] == 0
    assert state["currentQuestion"]["sequence"] == 1
    assert state["currentQuestion"]["speechText"] == "Question number 1? ..."
