"""JWT token verification.

Tokens are issued by the account service; this service only verifies them.
"""

from jose import JWTError, jwt

from progress_tracker.config import settings


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT. Returns payload dict or None on failure."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
