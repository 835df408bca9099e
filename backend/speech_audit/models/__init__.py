"""
Database models module initialization.
Exports all Tortoise ORM models for convenient imports throughout the application.

Models exported:
- User: Registered respondent account
- AuditTemplate: Named, ordered set of questions plus presentation defaults
- Question: One prompt within a template
- AuditSession: One respondent's progress through a template
- Response: One answer to one question within a session
- AuditInsight: Generated report for a completed session
"""
from .question import Question, QuestionType
from .response import Response, TranscriptionStatus
from .audit_session import AuditSession, SessionStatus
from .audit_template import AuditTemplate
from .audit_insight import AuditInsight, InsightConfidence
from .user import User
