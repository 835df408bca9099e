# speech_audit/schemas/insight.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class InsightUpdateIn(BaseModel):
    """
    Replaces every generated field of an insight.
    Omitted findings/risks are stored as empty collections.
    """
    summary: str
    keyFindings: Optional[Any] = None  # dict (generated shape) or list of findings
    riskIndicators: Optional[List[Dict[str, Any]]] = None
    overallScore: Optional[float] = None


__all__ = ["InsightUpdateIn"]
