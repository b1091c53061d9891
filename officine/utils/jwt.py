# FILE: officine/utils/jwt.py
from datetime import datetime, timedelta
from typing import Optional

from jose import jwt, JWTError

from officine.core.config import settings
from officine.core.identity import Identity


def create_token(
    *,
    subject: str,
    org_id: Optional[str],
    expires_delta: timedelta = timedelta(hours=8),
) -> str:
    now = datetime.utcnow()
    payload = {
        "sub": subject,  # user id from the identity provider
        "org_id": org_id,  # active organization
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def decode_identity(raw_token: Optional[str]) -> Optional[Identity]:
    """
    Decode a bearer token into an Identity.
    Invalid or expired tokens yield None; callers decide whether that is fatal.
    """
    if not raw_token:
        return None
    try:
        payload = jwt.decode(raw_token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except JWTError:
        return None
    return Identity.from_claims(payload)
