# speech_audit/api/v1/routers/responses.py
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    UploadFile,
    status,
)

from speech_audit.api.v1.deps import get_session_by_token
from speech_audit.core.errors import SessionStateError
from speech_audit.models import AuditSession, Question, Response
from speech_audit.schemas.session import ClarificationIn, TextAnswerIn
from speech_audit.services import session_flow, transcription

router = APIRouter(prefix="/sessions/{session_token}/responses", tags=["responses"])


def _response_to_dict(r: Response, question: Question | None = None) -> dict:
    return {
        "id": r.id,
        "questionId": r.question_id,
        "questionSequence": question.sequence if question else None,
        "transcribedText": r.transcribed_text,
        "transcriptionStatus": r.transcription_status.value,
        "transcriptionConfidence": r.transcription_confidence,
        "requiresClarification": r.requires_clarification,
        "clarificationNotes": r.clarification_notes,
        "audioDurationSeconds": r.original_audio_duration_seconds,
        "hasAudio": r.has_audio,
        "wordCount": r.word_count,
        "qualityScore": r.quality_score(question) if question else None,
        "respondedAt": r.responded_at.isoformat() if r.responded_at else None,
    }


async def _get_response(session: AuditSession, response_id: int) -> Response:
    r = await Response.get_or_none(id=response_id, session_id=session.id)
    if not r:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="RESPONSE_NOT_FOUND")
    return r


@router.get("")
async def list_responses(session: AuditSession = Depends(get_session_by_token)):
    rows = await Response.filter(session_id=session.id).prefetch_related("question")
    rows.sort(key=lambda r: r.question.sequence)
    return {"success": True, "data": {"items": [_response_to_dict(r, r.question) for r in rows]}}


@router.post("")
async def submit_text_answer(body: TextAnswerIn, session: AuditSession = Depends(get_session_by_token)):
    """
    Record an answer transcribed on the client for the current question.

    A confident, substantive answer advances the session; otherwise the
    response is kept and flagged for review and the cursor stays put.
    Re-submitting for the same question overwrites the previous answer.
    """
    question, response = await transcription.response_for_current_question(session)
    if body.audioDurationSeconds is not None:
        response.original_audio_duration_seconds = body.audioDurationSeconds
    advanced = await transcription.process_transcription(
        response,
        body.text,
        confidence=body.confidence,
        analysis=body.speechAnalysis,
    )
    await session.refresh_from_db()
    return {
        "success": True,
        "data": {
            "response": _response_to_dict(response, question),
            "advanced": advanced,
            "session": await session_flow.session_state(session),
        },
    }


@router.post("/audio", status_code=status.HTTP_202_ACCEPTED)
async def upload_audio_answer(
    background: BackgroundTasks,
    file: UploadFile = File(...),
    duration_seconds: int | None = Form(default=None, alias="durationSeconds"),
    session: AuditSession = Depends(get_session_by_token),
):
    """
    Upload a recording for the current question.

    The file is stored locally and transcribed in a background task; poll
    the response to see the outcome.
    """
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="EMPTY_AUDIO")
    question, response = await transcription.response_for_current_question(session)
    path = transcription.store_recording(session, file.filename, data)
    await transcription.attach_recording(response, path, duration_seconds)
    background.add_task(transcription.run_transcription_job, response.id)
    return {"success": True, "data": _response_to_dict(response, question)}


@router.get("/{response_id}")
async def get_response(response_id: int, session: AuditSession = Depends(get_session_by_token)):
    r = await _get_response(session, response_id)
    question = await Question.get(id=r.question_id)
    data = _response_to_dict(r, question)
    data["keywords"] = r.extract_keywords()
    data["sentiment"] = r.sentiment_analysis()
    data["needsReview"] = r.needs_review_given(data["qualityScore"])
    return {"success": True, "data": data}


@router.post("/{response_id}/clarification")
async def flag_for_clarification(
    response_id: int,
    body: ClarificationIn,
    session: AuditSession = Depends(get_session_by_token),
):
    r = await _get_response(session, response_id)
    await transcription.mark_for_clarification(r, body.notes)
    return {"success": True, "data": _response_to_dict(r, await Question.get(id=r.question_id))}


@router.delete("/{response_id}/clarification")
async def clear_clarification(response_id: int, session: AuditSession = Depends(get_session_by_token)):
    r = await _get_response(session, response_id)
    await transcription.clear_clarification_flag(r)
    return {"success": True, "data": _response_to_dict(r, await Question.get(id=r.question_id))}


@router.post("/{response_id}/retranscribe", status_code=status.HTTP_202_ACCEPTED)
async def retranscribe(
    response_id: int,
    background: BackgroundTasks,
    session: AuditSession = Depends(get_session_by_token),
):
    """Run the stored recording through the speech engine again."""
    r = await _get_response(session, response_id)
    if not await transcription.retranscribe(r):
        raise SessionStateError("NO_RECORDING", "Response has no stored recording")
    background.add_task(transcription.run_transcription_job, r.id)
    return {"success": True, "data": _response_to_dict(r, await Question.get(id=r.question_id))}
