from officine.models import ErrorLog
from officine.services.error_logger import format_exception, log_error


class _BrokenSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, row):
        pass

    def commit(self):
        raise RuntimeError("disk full")

    def rollback(self):
        self.rolled_back = True


def test_log_error_persists_row(db):
    try:
        raise ValueError("boom")
    except ValueError as exc:
        trace = format_exception(exc)

    log_error(db, description="boom", endpoint="/api/sales", http_status=500, stack_trace=trace)

    row = db.query(ErrorLog).one()
    assert row.endpoint == "/api/sales"
    assert row.error_source == "backend"
    assert "ValueError: boom" in row.stack_trace


def test_log_error_swallows_any_commit_failure():
    session = _BrokenSession()
    log_error(session, description="x", endpoint="/api/sales")
    assert session.rolled_back is True
