"""
Bearer-token authorization.

Tokens are issued by the auth service; this module only verifies them and
resolves the identified user. The `sub` claim carries the user id, older
tokens carry only an `email` claim.

Usage:
    @router.get("/protected")
    def protected(user: User = Depends(get_current_user)):
        return {"user_id": user.id}
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlmodel import Session, select

from floneo.core.config import settings
from floneo.core.error_handlers import AuthenticationError
from floneo.db.database import get_session
from floneo.models.user import User

logger = logging.getLogger(__name__)

# auto_error disabled so a missing header produces our 401 envelope instead of a bare 403
security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry, returning the token claims."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise AuthenticationError("Token has expired")
    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise AuthenticationError("Invalid token")


def _lookup_user(session: Session, claims: Dict[str, Any]) -> Optional[User]:
    subject = claims.get("sub")
    if subject is not None:
        try:
            return session.get(User, int(subject))
        except (TypeError, ValueError):
            logger.warning(f"Token subject is not a user id: {subject!r}")
            return None

    email = claims.get("email")
    if email:
        return session.exec(select(User).where(User.email == email)).first()
    return None


def authenticate_token(session: Session, token: str) -> User:
    """Resolve a raw bearer token to a User or raise AuthenticationError."""
    claims = decode_access_token(token)
    user = _lookup_user(session, claims)
    if user is None:
        logger.warning("Token does not identify a known user")
        raise AuthenticationError("Invalid token: unknown user")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: Session = Depends(get_session),
) -> User:
    """Dependency: the authenticated caller. Raises 401 when absent or invalid."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return authenticate_token(session, credentials.credentials)
