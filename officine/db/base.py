# FILE: officine/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All tenant-scoped tables (lots, movements, orders, sales, etc.) inherit from this."""
    pass
