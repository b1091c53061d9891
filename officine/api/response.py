# FILE: officine/api/response.py
from __future__ import annotations

from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from officine.schemas.common import ApiError, ApiResponse


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    payload = ApiResponse(ok=True, data=jsonable_encoder(data))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))


def err(msg: str, status_code: int = 400, code: Optional[str] = None, details: Any = None) -> JSONResponse:
    payload = ApiResponse(ok=False, error=ApiError(msg=msg, code=code, details=details))
    return JSONResponse(status_code=status_code, content=jsonable_encoder(payload))
