# FILE: officine/services/error_logger.py
from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from officine.models.error_log import ErrorLog

logger = logging.getLogger(__name__)


def log_error(
    db: Session,
    *,
    description: Optional[str] = None,
    error_source: str = "backend",
    endpoint: Optional[str] = None,
    module: Optional[str] = None,
    function: Optional[str] = None,
    http_status: Optional[int] = None,
    clerk_org_id: Optional[str] = None,
    request_payload: Optional[Dict[str, Any]] = None,
    stack_trace: Optional[str] = None,
) -> None:
    """
    Central helper to persist an error into error_logs.
    Safe: never raises, a failing commit is rolled back and logged.
    """
    try:
        row = ErrorLog(
            error_source=error_source,
            description=(description or "")[:1000] or None,
            endpoint=endpoint,
            module=module,
            function=function,
            http_status=http_status,
            clerk_org_id=clerk_org_id,
            request_payload=request_payload,
            stack_trace=stack_trace,
        )
        db.add(row)
        db.commit()
    except Exception:
        # last resort, the caller is already handling an error
        logger.exception("Failed to persist error log for %s", endpoint)
        try:
            db.rollback()
        except Exception:
            logger.exception("Rollback after error log failure also failed")


def format_exception(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
