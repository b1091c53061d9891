# FILE: officine/schemas/common.py
from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """
    Base for every DTO: snake_case in Python, camelCase on the wire.
    Input accepts either spelling.
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


# Amounts travel as JSON numbers whatever the FastAPI release.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class OrgScopedIn(ApiModel):
    clerk_org_id: str


class ApiError(BaseModel):
    msg: str
    code: Optional[str] = None
    details: Optional[Any] = None


class ApiResponse(BaseModel):
    ok: bool
    data: Optional[Any] = None
    error: Optional[ApiError] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
