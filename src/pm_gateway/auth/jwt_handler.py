"""JWT access-token verification.

Tokens are issued by the external auth service; this core only verifies
them. HS256 with a shared JWT_SECRET.

Expected claims:
    sub   user id
    type  "access"
    role  "user" | "admin" (optional, defaults to "user")
"""

from typing import Any

from jose import JWTError, jwt

from config.settings import settings
from src.pm_common.errors import InvalidTokenError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Raises:
        InvalidTokenError: signature/expiry invalid, wrong token type, or no subject.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidTokenError() from None

    if payload.get("type") != "access" or not payload.get("sub"):
        raise InvalidTokenError()
    return payload
