# FILE: officine/core/identity.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from officine.core.exceptions import UnauthorizedError


@dataclass(frozen=True)
class Identity:
    user_id: str
    org_id: Optional[str] = None

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> Optional["Identity"]:
        sub = claims.get("sub")
        if not sub:
            return None
        org = claims.get("org_id") or claims.get("orgId")
        return cls(user_id=str(sub), org_id=org if isinstance(org, str) else None)


def get_auth_org_id(identity: Optional[Identity]) -> Optional[str]:
    if identity is None:
        return None
    return identity.org_id or None


def has_org_access(identity: Optional[Identity], clerk_org_id: str) -> bool:
    org_id = get_auth_org_id(identity)
    return bool(org_id) and org_id == clerk_org_id


def assert_org_access(identity: Optional[Identity], clerk_org_id: str) -> Identity:
    """Mutations only. Read paths use has_org_access and return empty results instead."""
    if not has_org_access(identity, clerk_org_id):
        raise UnauthorizedError()
    return identity
