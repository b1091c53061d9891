from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Text,
    JSON,
)

from officine.db.base import Base
from officine.utils.timezone import now_local


class ErrorLog(Base):
    """
    Centralized backend error log.
    Written by the unhandled-exception handler, never by business code.
    """
    __tablename__ = "error_logs"

    id = Column(Integer, primary_key=True, index=True)

    error_source = Column(String(50), nullable=False, default="backend")
    description = Column(String(1000), nullable=True)

    # where it happened
    endpoint = Column(String(255), nullable=True)  # e.g. "POST /api/sales"
    module = Column(String(255), nullable=True)
    function = Column(String(255), nullable=True)

    http_status = Column(Integer, nullable=True)

    # tenant context
    clerk_org_id = Column(String(191), nullable=True)

    request_payload = Column(JSON, nullable=True)
    stack_trace = Column(Text, nullable=True)

    created_at = Column(DateTime, default=now_local, nullable=False)
