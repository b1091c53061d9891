# FILE: officine/api/deps.py
from __future__ import annotations

from typing import Generator, Optional

from fastapi import Header
from sqlalchemy.orm import Session

from officine.core.identity import Identity
from officine.db.session import SessionLocal
from officine.utils.jwt import decode_identity


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _extract_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def get_identity(authorization: Optional[str] = Header(default=None)) -> Optional[Identity]:
    """
    Optional identity: a missing or invalid token yields None.
    Read routes then answer with empty results, mutations with 403.
    """
    return decode_identity(_extract_bearer(authorization))
