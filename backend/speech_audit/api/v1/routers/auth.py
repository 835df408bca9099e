# speech_audit/api/v1/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException, Response, status

from speech_audit.api.v1.deps import get_current_user
from speech_audit.core.security import create_access_token, hash_password, verify_password
from speech_audit.models.user import User
from speech_audit.schemas.auth import LoginRequest, PreferencesIn, RegisterIn

router = APIRouter(prefix="/auth", tags=["auth"])


async def user_to_dict(u: User) -> dict:
    """Convert a User to the API's camelCase shape (never includes the hash)."""
    return {
        "id": str(u.id),
        "email": u.email,
        "name": u.full_name,
        "role": u.role,
        "preferredLanguage": u.preferred_language,
        "preferredVoice": u.preferred_voice,
        "speechEnabled": u.speech_enabled,
        "lastAuditAt": u.last_audit_at.isoformat() if u.last_audit_at else None,
        "completedAudits": await u.completed_audits_count(),
    }


@router.post("/register")
async def register(body: RegisterIn):
    """
    Register a new user account.

    The password is hashed before storage and the email must be unique
    (compared case-insensitively). Field-level problems such as a malformed
    email or an unsupported language surface as 422 VALIDATION_FAILED.

    Error codes:
        - BAD_REQUEST: Missing email or password
        - EMAIL_EXISTS: Email already registered
    """
    if not body.email or not body.password:
        return {"success": False, "error": {"code": "BAD_REQUEST", "message": "email/password required"}}
    if await User.filter(email=body.email.strip().lower()).exists():
        return {"success": False, "error": {"code": "EMAIL_EXISTS", "message": "Email already registered"}}

    u = await User.create(
        email=body.email,
        name=body.name,
        password_hash=hash_password(body.password),
        role="user",
        preferred_language=body.preferredLanguage,
        preferred_voice=body.preferredVoice,
        speech_enabled=True if body.speechEnabled is None else body.speechEnabled,
    )
    return {"success": True, "data": await user_to_dict(u)}


@router.post("/login")
async def login(payload: LoginRequest, response: Response):
    """
    Authenticate by email and password.

    The JWT is returned in the body and also set as the HttpOnly
    `accessToken` cookie for browser clients.

    Raises:
        HTTPException (401): If credentials are invalid
    """
    user = await User.get_or_none(email=payload.email.strip().lower())
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED,
                            detail={"code": "AUTH_INVALID_CREDENTIALS", "message": "Incorrect email or password"})
    token = create_access_token(str(user.id), user.role)
    response.set_cookie("accessToken", token, httponly=True, secure=False, samesite="lax")
    return {"success": True, "data": {"user": await user_to_dict(user), "accessToken": token}}


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    return {"success": True, "data": await user_to_dict(user)}


@router.patch("/me/preferences")
async def update_preferences(body: PreferencesIn, user: User = Depends(get_current_user)):
    """
    Update the current user's name and speech defaults.
    Only provided fields change; new sessions pick up the new defaults.
    """
    if body.name is not None:
        user.name = body.name
    if body.preferredLanguage is not None:
        user.preferred_language = body.preferredLanguage
    if body.preferredVoice is not None:
        user.preferred_voice = body.preferredVoice
    if body.speechEnabled is not None:
        user.speech_enabled = body.speechEnabled
    await user.save()
    return {"success": True, "data": await user_to_dict(user)}


@router.post("/logout")
async def logout(response: Response):
    """
    Clear the access token cookie.

    The JWT itself stays valid until it expires.
    """
    response.delete_cookie("accessToken")
    return {"success": True}
