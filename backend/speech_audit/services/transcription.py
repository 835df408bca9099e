"""
Response recording and transcription handling.

Answers arrive either as text already transcribed by the client's speech
engine (with its confidence) or as an audio upload that is transcribed in a
background task. Either way the outcome goes through process_transcription(),
which flags weak answers for clarification and advances the session when the
answer is good enough.
"""
import logging
import uuid
from pathlib import Path
from typing import Optional

from speech_audit.config import settings
from speech_audit.core.errors import SessionStateError
from speech_audit.models import (
    AuditSession,
    Question,
    Response,
    TranscriptionStatus,
    User,
)
from speech_audit.models.base import utc_now
from speech_audit.services import session_flow
from speech_audit.services.asr_factory import transcribe_audio

logger = logging.getLogger("uvicorn.error")


async def response_for_current_question(session: AuditSession) -> tuple[Question, Response]:
    """
    Get or create the response slot for the session's current question.

    Raises SessionStateError when the session is not accepting answers.
    """
    if not session.can_be_resumed:
        raise SessionStateError(
            "SESSION_NOT_ACTIVE", f"Session is {session.status.value}"
        )
    question = await session.current_question()
    if question is None:
        raise SessionStateError("NO_CURRENT_QUESTION", "Every question has been reached")

    response = await Response.get_or_none(session_id=session.id, question_id=question.id)
    if response is None:
        response = await Response.create(session=session, question=question)
    return question, response


async def process_transcription(
    response: Response,
    text: str,
    confidence: Optional[float] = None,
    analysis: Optional[dict] = None,
) -> bool:
    """
    Store a finished transcription and advance the session when the answer is usable.

    Returns True when the session advanced.
    """
    # A new answer replaces any earlier review state; the quality check re-flags it
    response.requires_clarification = False
    response.clarification_notes = None
    response.transcribed_text = text
    response.transcription_confidence = confidence
    response.speech_analysis = analysis
    response.transcription_status = TranscriptionStatus.COMPLETED
    response.responded_at = utc_now()
    await response.save()

    await check_transcription_quality(response)

    if await response.needs_review():
        logger.info("[transcription] response=%s held for review", response.id)
        return False

    session = await AuditSession.get(id=response.session_id)
    question = await Question.get(id=response.question_id)
    # Late transcriptions for an earlier question must not move the cursor
    if question.sequence != session.current_question_index + 1:
        return False
    return await session_flow.advance_to_next_question(session)


async def check_transcription_quality(response: Response) -> None:
    if response.is_low_confidence and not response.requires_clarification:
        await mark_for_clarification(
            response,
            f"Low transcription confidence: {round(response.transcription_confidence * 100)}%",
        )


async def fail_transcription(response: Response, error_message: str) -> None:
    response.transcription_status = TranscriptionStatus.FAILED
    response.clarification_notes = f"Transcription failed: {error_message}"
    await response.save()
    logger.warning("[transcription] response=%s failed: %s", response.id, error_message)


async def mark_for_clarification(response: Response, notes: Optional[str] = None) -> None:
    response.requires_clarification = True
    response.clarification_notes = notes
    await response.save()


async def clear_clarification_flag(response: Response) -> None:
    response.requires_clarification = False
    response.clarification_notes = None
    await response.save()


def store_recording(session: AuditSession, filename: Optional[str], data: bytes) -> str:
    """Write an uploaded recording to local storage and return its path."""
    suffix = Path(filename or "").suffix.lower() or ".webm"
    target_dir = Path(settings.audio_storage_dir) / "responses" / str(session.id)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"{uuid.uuid4().hex}{suffix}"
    path.write_bytes(data)
    return str(path)


async def attach_recording(response: Response, audio_path: str, duration_seconds: Optional[int] = None) -> None:
    """Replace the response's recording and reset it to await transcription."""
    response.audio_path = audio_path
    response.original_audio_duration_seconds = duration_seconds
    response.transcription_status = TranscriptionStatus.PENDING
    response.transcribed_text = None
    response.transcription_confidence = None
    response.requires_clarification = False
    response.clarification_notes = None
    await response.save()


async def mark_processing(response: Response) -> None:
    response.transcription_status = TranscriptionStatus.PROCESSING
    await response.save()


async def retranscribe(response: Response) -> bool:
    """Queue the stored recording for another pass. False when there is no recording."""
    if not response.has_audio:
        return False
    response.transcription_status = TranscriptionStatus.PENDING
    await response.save()
    return True


async def run_transcription_job(response_id: int) -> None:
    """
    Background task: transcribe a response's recording and record the outcome.

    Engine errors become a failed status with a note; they never propagate.
    """
    response = await Response.get_or_none(id=response_id)
    if response is None or not response.has_audio:
        return
    await mark_processing(response)

    session = await AuditSession.get(id=response.session_id)
    language = None
    if session.user_id is not None:
        user = await User.get_or_none(id=session.user_id)
        language = user.preferred_language if user else None

    audio_path = response.audio_path
    try:
        result = await transcribe_audio(audio_path, language=language)
    except Exception as e:
        result, error = None, str(e) or e.__class__.__name__

    # The session may have been restarted or the recording replaced meanwhile
    response = await Response.get_or_none(id=response_id)
    if response is None or response.audio_path != audio_path:
        logger.info("[transcription] response=%s discarded stale result", response_id)
        return

    try:
        if result is None:
            await fail_transcription(response, error)
            return
        if not result.full_text:
            await fail_transcription(response, "no speech detected")
            return

        if response.original_audio_duration_seconds is None and result.duration_sec:
            response.original_audio_duration_seconds = max(int(round(result.duration_sec)), 1)

        await process_transcription(
            response,
            result.full_text,
            confidence=result.confidence,
            analysis=result.speech_analysis(),
        )
    except Exception:
        logger.exception("[transcription] response=%s could not record result", response_id)
