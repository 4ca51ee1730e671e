"""
Security utilities: bearer-token authentication and internal service tokens.

End-user tokens are issued by the separate auth service; this service only
verifies them. Service tokens authenticate calls to the internal classifier.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.settings import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, role: str = "citizen", expires_minutes: int = 60) -> str:
    """Mint an end-user token (used by tooling and tests)."""
    if not settings.JWT_SECRET:
        raise ValueError("JWT_SECRET is not configured")
    payload = {
        "sub": user_id,
        "role": role,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict:
    if not settings.JWT_SECRET:
        logger.error("JWT_SECRET is not configured, refusing bearer token")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict:
    """
    Resolve the caller from the bearer token.

    Returns:
        {"id": ..., "role": ...}
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("sub") or payload.get("userId")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")

    return {"id": str(user_id), "role": (payload.get("role") or "citizen").lower()}


def is_officer(user: Dict) -> bool:
    return user.get("role") in {role.lower() for role in settings.OFFICER_ROLES}


def require_officer(current_user: Dict = Depends(get_current_user)) -> Dict:
    if not is_officer(current_user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Officer role required")
    return current_user


def create_service_token() -> str:
    """
    Short-lived HS256 token for the internal classifier.

    Claims: iss, role, iat, exp. Never logged.
    """
    if not settings.INTERNAL_JWT_SECRET:
        raise ValueError("INTERNAL_JWT_SECRET is not configured")

    now = datetime.now(timezone.utc)
    payload = {
        "iss": settings.INTERNAL_JWT_ISSUER,
        "role": settings.INTERNAL_JWT_ROLE,
        "iat": now,
        "exp": now + timedelta(seconds=settings.INTERNAL_JWT_TTL_SECONDS)
    }
    return jwt.encode(payload, settings.INTERNAL_JWT_SECRET, algorithm="HS256")
