"""Bearer token verification.

Tokens are issued by the account service; this side only verifies the
signature and reads the ``sub`` claim (the user id).
"""

import logging
from typing import Any, Optional

from jose import JWTError, jwt

from app.core.config import settings

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Optional[dict[str, Any]]:
    """Return the token claims, or None when it is invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.debug("Rejected access token: %s", exc)
        return None
