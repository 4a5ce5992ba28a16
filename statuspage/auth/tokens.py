# ---
# File: statuspage/auth/tokens.py
# Purpose: Signed bearer tokens (JWT) identifying a user
# ---

from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt

from statuspage import config
from statuspage.errors import AuthenticationError
from statuspage.utils.time_utils import utc_now


def create_access_token(user, expires_minutes: Optional[int] = None) -> str:
    expires_at = utc_now() + timedelta(minutes=expires_minutes or config.JWT_EXPIRY_MINUTES)
    claims = {"sub": user.id, "email": user.email, "exp": expires_at}
    return jwt.encode(claims, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> str:
    """Return the user id carried by a valid, unexpired token."""
    try:
        claims = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid or expired token")
    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid or expired token")
    return user_id


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
