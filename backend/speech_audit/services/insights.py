"""
Insight generation and reporting for completed audit sessions.

generate_for_session() is awaited directly when a session completes; the
report helpers combine the stored insight with live response statistics.
"""
import logging
from typing import Dict, List, Optional

from speech_audit.models import (
    AuditInsight,
    AuditSession,
    AuditTemplate,
    Response,
)
from speech_audit.services import scoring
from speech_audit.services.text_analysis import common_themes, truncate

logger = logging.getLogger("uvicorn.error")

COMPLETION_RISK_THRESHOLD = 80      # completion rate (%) below which the audit counts as incomplete
LOW_CONFIDENCE_RISK_SHARE = 0.3     # share of low-confidence answers that flags data quality
STRONG_COMPLIANCE_THRESHOLD = 90    # completion rate (%) described as "strong"
HIGH_CONFIDENCE_SHARE = 0.8         # share of high-confidence answers counted as a strength
CLARIFICATION_PROMPT_LENGTH = 50


async def _load_responses(session: AuditSession) -> List[Response]:
    return await Response.filter(session_id=session.id).prefetch_related("question").order_by("id")


def _quality_scores(responses: List[Response]) -> List[int]:
    return [r.quality_score(r.question) for r in responses]


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------
async def generate_summary(session: AuditSession, responses: List[Response], template: AuditTemplate) -> str:
    completion_rate = await session.completion_rate()
    follow_ups = sum(1 for r in responses if r.requires_clarification)
    outlook = "strong" if completion_rate > STRONG_COMPLIANCE_THRESHOLD else "adequate"
    return (
        f"Completed {template.name} audit with {len(responses)} responses in "
        f"{session.duration_in_minutes()} minutes. "
        f"Overall compliance appears {outlook} with {follow_ups} items requiring follow-up."
    )


async def extract_key_findings(session: AuditSession, responses: List[Response], template: AuditTemplate) -> Dict:
    completion_rate = await session.completion_rate()
    average_quality = scoring.mean(_quality_scores(responses))
    return {
        "completion_rate": completion_rate,
        "average_response_quality": average_quality,
        "common_themes": common_themes(r.transcribed_text for r in responses),
        "compliance_indicators": {
            "completeness": completion_rate,
            "quality": average_quality or 0,
            "timeliness": session.duration_in_minutes() <= template.estimated_duration_minutes,
        },
    }


async def identify_risks(session: AuditSession, responses: List[Response]) -> List[Dict]:
    risks = []

    if await session.completion_rate() < COMPLETION_RISK_THRESHOLD:
        risks.append({
            "category": "completion",
            "severity": "medium",
            "description": "Incomplete audit responses",
            "recommended_action": "Follow up on missing responses",
        })

    low_confidence = sum(1 for r in responses if r.is_low_confidence)
    if low_confidence > len(responses) * LOW_CONFIDENCE_RISK_SHARE:
        risks.append({
            "category": "data_quality",
            "severity": "high",
            "description": "Multiple responses with poor audio quality",
            "recommended_action": "Re-record unclear responses",
        })

    return risks


async def calculate_overall_score(session: AuditSession, responses: List[Response]) -> float:
    if not responses:
        return 0
    return scoring.overall_score(
        await session.completion_rate(),
        _quality_scores(responses),
        [r.transcription_confidence for r in responses],
    )


async def generate_for_session(session: AuditSession) -> Optional[AuditInsight]:
    """Build and persist the insight for a completed session (None otherwise)."""
    if not session.is_completed:
        return None

    template = await AuditTemplate.get(id=session.template_id)
    responses = await _load_responses(session)

    insight = await AuditInsight.create(
        session_id=session.id,
        summary=await generate_summary(session, responses, template),
        key_findings=await extract_key_findings(session, responses, template),
        risk_indicators=await identify_risks(session, responses),
        overall_score=await calculate_overall_score(session, responses),
    )
    logger.info(
        "[insight] generated for session=%s score=%s confidence=%s risks=%d",
        session.id, insight.overall_score, insight.confidence_level, insight.total_risk_count,
    )
    if insight.has_high_risk_indicators:
        notify_stakeholders(insight)
    return insight


async def regenerate_for_session(session: AuditSession) -> Optional[AuditInsight]:
    """Recompute every field of an existing insight from the current responses."""
    insight = await AuditInsight.get_or_none(session_id=session.id)
    if insight is None:
        return await generate_for_session(session)
    template = await AuditTemplate.get(id=session.template_id)
    responses = await _load_responses(session)
    await insight.update_insights(
        await generate_summary(session, responses, template),
        await extract_key_findings(session, responses, template),
        await identify_risks(session, responses),
        await calculate_overall_score(session, responses),
    )
    return insight


def notify_stakeholders(insight: AuditInsight) -> None:
    logger.warning(
        "[insight] high-risk audit: session=%s score=%s high_priority_risks=%d",
        insight.session_id, insight.overall_score, len(insight.high_priority_risks),
    )


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------
async def areas_of_concern(insight: AuditInsight) -> List[str]:
    session = await AuditSession.get(id=insight.session_id)
    concerns = [r.get("description") for r in insight.high_priority_risks]

    low_confidence = await Response.filter(
        session_id=session.id, transcription_confidence__lt=scoring.LOW_CONFIDENCE
    ).count()
    if low_confidence:
        concerns.append(f"{low_confidence} responses with low transcription confidence")

    missing = await session.total_questions() - await Response.filter(session_id=session.id).count()
    if missing > 0:
        concerns.append(f"{missing} unanswered questions")

    return concerns


async def strengths(insight: AuditInsight) -> List[str]:
    session = await AuditSession.get(id=insight.session_id)
    found = []

    if insight.overall_score is not None and insight.overall_score >= 80:
        found.append(f"Strong overall audit score ({round(insight.overall_score)}%)")

    answered = await Response.filter(session_id=session.id).count()
    if answered == await session.total_questions():
        found.append("All questions answered completely")

    high_confidence = await Response.filter(
        session_id=session.id, transcription_confidence__gte=scoring.HIGH_CONFIDENCE
    ).count()
    if high_confidence > answered * HIGH_CONFIDENCE_SHARE:
        found.append("High-quality audio responses")

    if isinstance(insight.key_findings, dict) and insight.key_findings.get("strengths"):
        found.extend(insight.key_findings["strengths"])

    return found


async def action_items(insight: AuditInsight) -> List[Dict]:
    """
    Follow-up actions: high-priority risks, then clarification requests, then
    actions recorded in the findings. High priority sorts first; order within
    the same priority is preserved.
    """
    items = []

    for risk in insight.high_priority_risks:
        items.append({
            "priority": "high",
            "action": risk.get("recommended_action") or f"Address {risk.get('description')}",
            "category": risk.get("category") or "risk_mitigation",
        })

    flagged = await Response.filter(
        session_id=insight.session_id, requires_clarification=True
    ).prefetch_related("question").order_by("id")
    for response in flagged:
        items.append({
            "priority": "medium",
            "action": f"Clarify response to: {truncate(response.question.text, CLARIFICATION_PROMPT_LENGTH)}",
            "category": "clarification",
        })

    if isinstance(insight.key_findings, dict):
        for item in insight.key_findings.get("action_items") or []:
            items.append(dict(item))

    return sorted(items, key=lambda item: 0 if item.get("priority") == "high" else 1)


async def generate_report_data(insight: AuditInsight) -> Dict:
    session = await AuditSession.get(id=insight.session_id)
    template = await AuditTemplate.get(id=session.template_id)
    total = await Response.filter(session_id=session.id).count()
    high_confidence = await Response.filter(
        session_id=session.id, transcription_confidence__gte=scoring.HIGH_CONFIDENCE
    ).count()
    requiring_review = await Response.filter(session_id=session.id, requires_clarification=True).count()

    return {
        "session_id": str(session.id),
        "template_name": template.name,
        "completed_at": session.completed_at.isoformat() if session.completed_at else None,
        "duration_minutes": session.duration_in_minutes(),
        "overall_score": insight.overall_score,
        "risk_level": insight.risk_level,
        "risk_color": insight.risk_color,
        "confidence_level": insight.confidence_level.value if insight.confidence_level else None,
        "summary": insight.summary,
        "key_findings": insight.key_findings_summary,
        "recommendations": insight.recommendations,
        "risks": {
            "total": insight.total_risk_count,
            "high_priority": len(insight.high_priority_risks),
            "medium_priority": len(insight.medium_priority_risks),
        },
        "areas_of_concern": await areas_of_concern(insight),
        "strengths": await strengths(insight),
        "action_items": await action_items(insight),
        "responses_summary": {
            "total": total,
            "high_confidence": high_confidence,
            "requiring_review": requiring_review,
        },
    }
