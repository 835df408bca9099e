# speech_audit/api/v1/deps.py
from fastapi import Depends, Header, HTTPException, Path, Request, status

from speech_audit.core.security import decode_access_token
from speech_audit.models import AuditSession
from speech_audit.models.user import User


def _extract_token(request: Request, authorization: str | None) -> str | None:
    # 1) Prioritize Authorization: Bearer xxx
    if authorization and authorization.lower().startswith("bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    # 2) Secondly HttpOnly Cookie: accessToken
    return request.cookies.get("accessToken")


async def _user_from_token(token: str) -> User:
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_INVALID_TOKEN")

    user = await User.get_or_none(id=user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_USER_NOT_FOUND")
    return user


async def get_current_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> User:
    """
    FastAPI dependency to get the current authenticated user.

    The JWT is read from the Authorization header (Bearer token) first and
    from the HttpOnly `accessToken` cookie second.

    Raises:
        HTTPException (401): AUTH_REQUIRED, AUTH_INVALID_TOKEN or AUTH_USER_NOT_FOUND
    """
    token = _extract_token(request, authorization)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")
    return await _user_from_token(token)


async def get_optional_user(
    request: Request,
    authorization: str | None = Header(default=None),
) -> User | None:
    """
    Like get_current_user, but anonymous callers get None instead of a 401.
    A token that is present but invalid is still rejected.
    """
    token = _extract_token(request, authorization)
    if not token:
        return None
    return await _user_from_token(token)


async def require_admin(current: User = Depends(get_current_user)) -> User:
    """
    FastAPI dependency to ensure the current user is an administrator.

    Raises:
        HTTPException (403): If user is not an admin (FORBIDDEN_ADMIN_ONLY)
        HTTPException (401): If user is not authenticated (from get_current_user)
    """
    if getattr(current, "role", "user") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="FORBIDDEN_ADMIN_ONLY")
    return current


async def get_session_by_token(
    session_token: str = Path(...),
    current: User | None = Depends(get_optional_user),
) -> AuditSession:
    """
    Resolve the session addressed by its token.

    Anyone holding the token of an anonymous session may use it. A session
    owned by a user is only reachable by that user or an admin.
    """
    session = await AuditSession.get_or_none(session_token=session_token)
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="SESSION_NOT_FOUND")
    if session.user_id is not None:
        if current is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="AUTH_REQUIRED")
        if current.id != session.user_id and current.role != "admin":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="FORBIDDEN_NOT_OWNER")
    return session
