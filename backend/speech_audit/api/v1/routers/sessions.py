# speech_audit/api/v1/routers/sessions.py
from fastapi import APIRouter, Depends, HTTPException, Query, status

from speech_audit.api.v1.deps import get_current_user, get_optional_user, get_session_by_token
from speech_audit.core.errors import SessionStateError
from speech_audit.models import AuditSession, AuditTemplate
from speech_audit.models.user import User
from speech_audit.schemas.session import StartSessionIn
from speech_audit.services import session_flow

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("")
async def start_session(body: StartSessionIn, user: User | None = Depends(get_optional_user)):
    """
    Start a session on an active template.

    Logged-in callers own the session; anonymous callers get a session that
    is reachable only through the returned sessionToken.

    Error codes:
        - TEMPLATE_NOT_FOUND (404)
        - TEMPLATE_INACTIVE (409)
    """
    template = await AuditTemplate.get_or_none(id=body.templateId)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="TEMPLATE_NOT_FOUND")
    session = await session_flow.start_session(
        template,
        user=user,
        preferred_voice=body.preferredVoice,
        speech_enabled=body.speechEnabled,
    )
    data = await session_flow.session_state(session)
    data["introMessage"] = template.intro_message
    return {"success": True, "data": data}


@router.get("")
async def list_my_sessions(
    user: User = Depends(get_current_user),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """List the current user's sessions, newest first."""
    qs = AuditSession.filter(user_id=user.id)
    total = await qs.count()
    rows = await qs.order_by("-created_at").offset(offset).limit(limit)
    items = [await session_flow.session_state(s) for s in rows]
    return {"success": True, "data": {"items": items, "offset": offset, "limit": limit, "total": total}}


@router.get("/{session_token}")
async def get_session(session: AuditSession = Depends(get_session_by_token)):
    return {"success": True, "data": await session_flow.session_state(session)}


@router.get("/{session_token}/current-question")
async def current_question(session: AuditSession = Depends(get_session_by_token)):
    """
    The question the respondent should answer now.
    After the last question the outro message is returned instead.
    """
    question = await session.current_question()
    if question is None:
        template = await AuditTemplate.get(id=session.template_id)
        return {"success": True, "data": {"question": None, "outroMessage": template.outro_message}}
    return {
        "success": True,
        "data": {
            "question": session_flow.question_payload(question),
            "questionNumber": question.sequence,
            "totalQuestions": await session.total_questions(),
            "voice": session.preferred_voice,
            "speechEnabled": session.speech_enabled,
        },
    }


@router.post("/{session_token}/advance")
async def advance(session: AuditSession = Depends(get_session_by_token)):
    """
    Skip to the next question without answering.
    Advancing past the last question completes the session.
    """
    if not await session_flow.advance_to_next_question(session):
        raise SessionStateError("CANNOT_ADVANCE", f"Session {session.status.value} cannot advance")
    return {"success": True, "data": await session_flow.session_state(session)}


@router.post("/{session_token}/abandon")
async def abandon(session: AuditSession = Depends(get_session_by_token)):
    await session_flow.abandon_session(session)
    return {"success": True, "data": await session_flow.session_state(session)}


@router.post("/{session_token}/restart")
async def restart(session: AuditSession = Depends(get_session_by_token)):
    """Start over from the first question; previous answers and the insight are discarded."""
    await session_flow.restart_session(session)
    return {"success": True, "data": await session_flow.session_state(session)}
