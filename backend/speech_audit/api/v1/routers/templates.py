# speech_audit/api/v1/routers/templates.py
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from tortoise.transactions import in_transaction

from speech_audit.api.v1.deps import get_current_user, require_admin
from speech_audit.config import settings
from speech_audit.models import AuditSession, AuditTemplate, Question, SessionStatus
from speech_audit.models.user import User
from speech_audit.schemas.template import QuestionIn, TemplateCreateIn, TemplateUpdateIn
from speech_audit.services.session_flow import question_payload
from speech_audit.services.tts_elevenlabs import synthesize_question_audio

router = APIRouter(prefix="/templates", tags=["templates"])


async def _template_to_dict(t: AuditTemplate, with_questions: bool = False) -> dict:
    data = {
        "id": t.id,
        "name": t.name,
        "description": t.description,
        "active": t.active,
        "estimatedDurationMinutes": t.estimated_duration_minutes,
        "introMessage": t.intro_message,
        "outroMessage": t.outro_message,
        "defaultVoice": t.default_voice,
        "totalQuestions": await t.total_questions(),
    }
    if with_questions:
        data["questions"] = [question_payload(q) for q in await t.ordered_questions()]
    return data


async def _get_template(template_id: int) -> AuditTemplate:
    t = await AuditTemplate.get_or_none(id=template_id)
    if not t:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="TEMPLATE_NOT_FOUND")
    return t


def _question_fields(body: QuestionIn) -> dict:
    return {
        "text": body.text,
        "speech_text": body.speechText,
        "sequence": body.sequence,
        "question_type": body.questionType,
        "max_response_seconds": body.maxResponseSeconds,
        "expected_keywords": body.expectedKeywords,
        "followup_prompts": body.followupPrompts,
    }


def _schedule_audio(background: BackgroundTasks, question: Question, voice: str | None) -> None:
    if settings.generate_question_audio:
        background.add_task(synthesize_question_audio, question.id, voice)


@router.get("")
async def list_templates(
    user: User = Depends(get_current_user),
    include_inactive: bool = Query(False, alias="includeInactive"),
):
    """
    List templates ordered by name.
    Only active templates are listed unless an admin asks for inactive ones too.
    """
    qs = AuditTemplate.all().order_by("name")
    if not (include_inactive and user.role == "admin"):
        qs = qs.filter(active=True)
    items = [await _template_to_dict(t) for t in await qs]
    return {"success": True, "data": {"items": items, "total": len(items)}}


@router.get("/{template_id}")
async def get_template(template_id: int, user: User = Depends(get_current_user)):
    t = await _get_template(template_id)
    if not t.active and user.role != "admin":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="TEMPLATE_NOT_FOUND")
    return {"success": True, "data": await _template_to_dict(t, with_questions=True)}


@router.post("", dependencies=[Depends(require_admin)])
async def create_template(body: TemplateCreateIn, background: BackgroundTasks):
    """
    Create a template together with its initial questions (admin only).

    The template and its questions are written in one transaction, so a
    question that fails validation leaves nothing behind. Question audio is
    synthesized afterwards when GENERATE_QUESTION_AUDIO is on.
    """
    if await AuditTemplate.filter(name=body.name).exists():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "TEMPLATE_EXISTS", "message": "Template name already exists"},
        )

    async with in_transaction() as conn:
        t = await AuditTemplate.create(
            name=body.name,
            description=body.description,
            active=body.active,
            estimated_duration_minutes=body.estimatedDurationMinutes,
            intro_message=body.introMessage,
            outro_message=body.outroMessage,
            default_voice=body.defaultVoice,
            using_db=conn,
        )
        questions = []
        for index, q in enumerate(body.questions, start=1):
            fields = _question_fields(q)
            if fields["sequence"] is None:
                fields["sequence"] = index
            questions.append(await Question.create(template=t, using_db=conn, **fields))

    for q in questions:
        _schedule_audio(background, q, t.default_voice)
    return {"success": True, "data": await _template_to_dict(t, with_questions=True)}


@router.patch("/{template_id}", dependencies=[Depends(require_admin)])
async def update_template(template_id: int, body: TemplateUpdateIn):
    t = await _get_template(template_id)

    if body.name and body.name != t.name:
        if await AuditTemplate.filter(name=body.name).exclude(id=template_id).exists():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"code": "TEMPLATE_EXISTS", "message": "Template name already exists"},
            )
        t.name = body.name
    if body.description is not None:
        t.description = body.description
    if body.active is not None:
        t.active = body.active
    if body.estimatedDurationMinutes is not None:
        t.estimated_duration_minutes = body.estimatedDurationMinutes
    if body.introMessage is not None:
        t.intro_message = body.introMessage
    if body.outroMessage is not None:
        t.outro_message = body.outroMessage
    if body.defaultVoice is not None:
        t.default_voice = body.defaultVoice

    await t.save()
    return {"success": True, "data": await _template_to_dict(t)}


@router.delete("/{template_id}", dependencies=[Depends(require_admin)])
async def delete_template(template_id: int):
    """
    Delete a template and its questions (admin only).

    Templates that have been used by any session are kept for their history;
    deactivate them instead.
    """
    t = await _get_template(template_id)
    if not await t.can_be_deleted():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "TEMPLATE_IN_USE", "message": "Template has sessions; deactivate it instead"},
        )
    await t.delete()
    return {"success": True, "data": {"ok": True}}


@router.post("/{template_id}/questions", dependencies=[Depends(require_admin)])
async def add_question(template_id: int, body: QuestionIn, background: BackgroundTasks):
    """
    Append a question to a template (admin only).
    Without an explicit sequence it goes after the current last question.
    Used templates are frozen so existing sessions keep their question count.
    """
    t = await _get_template(template_id)
    if not await t.can_be_deleted():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "TEMPLATE_IN_USE", "message": "Questions cannot be added to a used template"},
        )
    q = await Question.create(template=t, **_question_fields(body))
    _schedule_audio(background, q, t.default_voice)
    return {"success": True, "data": question_payload(q)}


@router.delete("/{template_id}/questions/{question_id}", dependencies=[Depends(require_admin)])
async def delete_question(template_id: int, question_id: int):
    t = await _get_template(template_id)
    if not await t.can_be_deleted():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "TEMPLATE_IN_USE", "message": "Questions of a used template cannot be removed"},
        )
    q = await Question.get_or_none(id=question_id, template_id=t.id)
    if not q:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="QUESTION_NOT_FOUND")
    await q.delete()
    return {"success": True, "data": {"ok": True}}


@router.get("/{template_id}/stats", dependencies=[Depends(require_admin)])
async def template_stats(template_id: int):
    t = await _get_template(template_id)
    return {
        "success": True,
        "data": {
            "templateId": t.id,
            "totalQuestions": await t.total_questions(),
            "totalSessions": await AuditSession.filter(template_id=t.id).count(),
            "completedSessions": await AuditSession.filter(template_id=t.id, status=SessionStatus.COMPLETED).count(),
            "completionRate": await t.completion_rate(),
            "averageCompletionMinutes": await t.average_completion_time(),
        },
    }
