import logging
from typing import Any, Dict

from jose import jwt, JWTError

from delivery_api.core.config import settings
from delivery_api.core.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


def decode_access_token(token: str) -> Dict[str, Any]:
    if not token:
        raise UnauthorizedError("Not authorized, login again", code="NO_TOKEN")

    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info(f"Rejected access token: {e}")
        raise UnauthorizedError("Invalid token, login again", code="INVALID_TOKEN")

    if not claims.get("id"):
        raise UnauthorizedError("Invalid token, login again", code="INVALID_TOKEN")
    return claims
