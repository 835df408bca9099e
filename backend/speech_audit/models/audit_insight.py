"""
Database model for audit insights.
One generated report per completed session: free-text summary, structured
key findings, risk indicators, an overall 0-100 score and a confidence tier.
"""
from enum import Enum
from typing import Dict, List

from tortoise import fields

from speech_audit.models.audit_session import AuditSession, SessionStatus
from speech_audit.models.base import AuditRecord
from speech_audit.services import scoring
from speech_audit.services.text_analysis import is_blank

KEY_FINDINGS_SUMMARY_LIMIT = 5


class InsightConfidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AuditInsight(AuditRecord):
    """
    Relationships:
    - Belongs to exactly one AuditSession (one-to-one, session must be completed)

    `risk_indicators` entries are dicts with category / severity / description /
    recommended_action keys.
    """
    id = fields.IntField(pk=True)
    session = fields.OneToOneField(
        "models.AuditSession", related_name="insight", on_delete=fields.CASCADE
    )
    summary = fields.TextField()
    key_findings = fields.JSONField(null=True)     # dict (generated) or list (hand-written findings)
    risk_indicators = fields.JSONField(null=True)  # list[dict]
    overall_score = fields.FloatField(null=True, index=True)
    confidence_level = fields.CharEnumField(InsightConfidence, max_length=8, null=True, index=True)

    class Meta:
        table = "audit_insights"

    async def prepare(self) -> None:
        if self.confidence_level is None:
            self.confidence_level = InsightConfidence(
                scoring.confidence_level(self.overall_score, self._risk_list())
            )

    async def validate_record(self) -> List[str]:
        errors = []
        if is_blank(self.summary):
            errors.append("summary can't be blank")
        if self.overall_score is not None and not 0.0 <= self.overall_score <= 100.0:
            errors.append("overall_score must be in [0.0, 100.0]")
        if self.key_findings and not isinstance(self.key_findings, (dict, list)):
            errors.append("key_findings must be valid JSON")
        if self.risk_indicators and not isinstance(self.risk_indicators, (dict, list)):
            errors.append("risk_indicators must be valid JSON array")
        session = await AuditSession.get_or_none(id=self.session_id)
        if session is None:
            errors.append("session must exist")
        elif session.status != SessionStatus.COMPLETED:
            errors.append("session must be completed before generating insights")
        return errors

    def _risk_list(self) -> List[Dict]:
        return self.risk_indicators if isinstance(self.risk_indicators, list) else []

    # ---------- risk views ----------
    @property
    def risk_level(self) -> str:
        return scoring.risk_level(self.overall_score)

    @property
    def risk_color(self) -> str:
        return scoring.RISK_COLORS[self.risk_level]

    @property
    def has_risks(self) -> bool:
        return bool(self.risk_indicators)

    @property
    def high_priority_risks(self) -> List[Dict]:
        return [r for r in self._risk_list() if r.get("severity") == "high"]

    @property
    def medium_priority_risks(self) -> List[Dict]:
        return [r for r in self._risk_list() if r.get("severity") == "medium"]

    @property
    def total_risk_count(self) -> int:
        return len(self.risk_indicators or [])

    @property
    def has_high_risk_indicators(self) -> bool:
        return bool(self.high_priority_risks) or (
            self.overall_score is not None and self.overall_score < 40
        )

    # ---------- findings views ----------
    @property
    def key_findings_summary(self) -> List:
        if not isinstance(self.key_findings, list):
            return []
        return self.key_findings[:KEY_FINDINGS_SUMMARY_LIMIT]

    @property
    def recommendations(self) -> List:
        if not isinstance(self.key_findings, dict):
            return []
        return self.key_findings.get("recommendations") or []

    @property
    def compliance_score(self):
        if isinstance(self.key_findings, dict):
            compliance = self.key_findings.get("compliance")
            if isinstance(compliance, dict) and compliance.get("score") is not None:
                return compliance["score"]
        return self.overall_score

    async def update_insights(self, summary: str, key_findings=None, risk_indicators=None, overall_score=None) -> None:
        """Replace every generated field at once and re-derive the confidence tier."""
        risks = risk_indicators if risk_indicators is not None else []
        self.summary = summary
        self.key_findings = key_findings if key_findings is not None else {}
        self.risk_indicators = risks
        self.overall_score = overall_score
        self.confidence_level = InsightConfidence(scoring.confidence_level(overall_score, risks))
        await self.save()
