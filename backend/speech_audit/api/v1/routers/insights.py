# speech_audit/api/v1/routers/insights.py
from fastapi import APIRouter, Depends, HTTPException, status

from speech_audit.api.v1.deps import get_session_by_token, require_admin
from speech_audit.core.errors import SessionStateError
from speech_audit.models import AuditInsight, AuditSession
from speech_audit.schemas.insight import InsightUpdateIn
from speech_audit.services import insights

router = APIRouter(prefix="/sessions/{session_token}/insight", tags=["insights"])


def _insight_to_dict(i: AuditInsight) -> dict:
    return {
        "id": i.id,
        "sessionId": str(i.session_id),
        "summary": i.summary,
        "keyFindings": i.key_findings,
        "riskIndicators": i.risk_indicators or [],
        "overallScore": i.overall_score,
        "confidenceLevel": i.confidence_level.value if i.confidence_level else None,
        "riskLevel": i.risk_level,
        "riskColor": i.risk_color,
        "createdAt": i.created_at.isoformat() if i.created_at else None,
        "updatedAt": i.updated_at.isoformat() if i.updated_at else None,
    }


async def _get_insight(session: AuditSession) -> AuditInsight:
    i = await AuditInsight.get_or_none(session_id=session.id)
    if not i:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="INSIGHT_NOT_FOUND")
    return i


@router.get("")
async def get_insight(session: AuditSession = Depends(get_session_by_token)):
    return {"success": True, "data": _insight_to_dict(await _get_insight(session))}


@router.get("/report")
async def get_report(session: AuditSession = Depends(get_session_by_token)):
    """Full report: scores, risk breakdown, strengths, concerns and prioritized action items."""
    return {"success": True, "data": await insights.generate_report_data(await _get_insight(session))}


@router.post("/regenerate")
async def regenerate(session: AuditSession = Depends(get_session_by_token)):
    """Recompute the insight from the session's current responses."""
    if not session.is_completed:
        raise SessionStateError("SESSION_NOT_COMPLETED", "Insights exist only for completed sessions")
    insight = await insights.regenerate_for_session(session)
    return {"success": True, "data": _insight_to_dict(insight)}


@router.put("", dependencies=[Depends(require_admin)])
async def replace_insight(body: InsightUpdateIn, session: AuditSession = Depends(get_session_by_token)):
    """Overwrite the generated insight with reviewed content (admin only)."""
    insight = await _get_insight(session)
    await insight.update_insights(
        body.summary,
        key_findings=body.keyFindings,
        risk_indicators=body.riskIndicators,
        overall_score=body.overallScore,
    )
    return {"success": True, "data": _insight_to_dict(insight)}
