# speech_audit/schemas/auth.py
"""
Pydantic schemas for authentication and account endpoints.
"""
from typing import Optional

from pydantic import BaseModel


class RegisterIn(BaseModel):
    """
    Request model for self-registration.
    Speech preferences fall back to the server defaults when omitted.
    """
    email: str
    name: str
    password: str
    preferredLanguage: Optional[str] = None
    preferredVoice: Optional[str] = None
    speechEnabled: Optional[bool] = None


class LoginRequest(BaseModel):
    email: str
    password: str  # Plain text, verified against the Argon2 hash


class PreferencesIn(BaseModel):
    """Partial update of the speech defaults copied onto new sessions."""
    name: Optional[str] = None
    preferredLanguage: Optional[str] = None
    preferredVoice: Optional[str] = None
    speechEnabled: Optional[bool] = None


class UserOut(BaseModel):
    """
    User information returned in authentication responses.
    Contains basic user details without sensitive information.
    """
    id: str
    email: str
    name: str
    role: str = "user"  # "user" or "admin"
    preferredLanguage: str
    preferredVoice: str
    speechEnabled: bool
    lastAuditAt: Optional[str] = None
    completedAudits: int = 0


class LoginResponse(BaseModel):
    user: UserOut
    accessToken: str  # JWT access token for API authentication


__all__ = ["RegisterIn", "LoginRequest", "PreferencesIn", "UserOut", "LoginResponse"]
