# FILE: officine/api/exception_handlers.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from officine.api.response import err
from officine.core.exceptions import OfficineError
from officine.db.session import SessionLocal
from officine.services.error_logger import format_exception, log_error

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OfficineError)
    async def officine_error_handler(request: Request, exc: OfficineError) -> JSONResponse:
        return err(msg=exc.message, status_code=exc.status_code, code=exc.code, details=exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # exc.detail can be str/dict/list
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return err(msg=msg, status_code=exc.status_code, code="HTTP_ERROR")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return err(
            msg="Validation error",
            status_code=422,
            code="VALIDATION_ERROR",
            details=jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        db = SessionLocal()
        try:
            log_error(
                db,
                description=str(exc),
                endpoint=f"{request.method} {request.url.path}",
                module=type(exc).__module__,
                function=type(exc).__name__,
                http_status=500,
                clerk_org_id=request.query_params.get("clerkOrgId"),
                stack_trace=format_exception(exc),
            )
        finally:
            db.close()
        return err(msg="Internal server error", status_code=500, code="INTERNAL_ERROR")
