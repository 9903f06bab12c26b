"""
Security utilities for authentication.

Access tokens are issued by Supabase Auth and signed with the project's JWT
secret. This service only verifies them; it never issues tokens.
"""
import logging
from typing import Any, Dict, Optional
from jose import JWTError, jwt

from .config import Settings

logger = logging.getLogger(__name__)


def verify_token(token: str, settings: Settings) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a Supabase access token.

    Returns the claims, or None if the token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        logger.info(f"Token verification failed: {type(e).__name__}: {e}")
        return None

