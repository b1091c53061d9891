# FILE: officine/db/init_db.py
from __future__ import annotations

import argparse
import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from officine.db.base import Base
from officine.db.session import engine

# Import all models so metadata is complete
import officine.models  # noqa: F401

logger = logging.getLogger(__name__)


def existing_tables(bind: Engine) -> set:
    return set(inspect(bind).get_table_names())


def create_all(bind: Engine = engine) -> None:
    before = existing_tables(bind)
    Base.metadata.create_all(bind=bind)
    created = existing_tables(bind) - before
    if created:
        logger.info("Created tables: %s", sorted(created))
    else:
        logger.info("All tables already present")


def drop_all(bind: Engine = engine) -> None:
    Base.metadata.drop_all(bind=bind)
    logger.info("Dropped all tables")


def main() -> None:
    parser = argparse.ArgumentParser(description="Create (or reset) the back-office schema")
    parser.add_argument("--reset", action="store_true", help="drop every table before creating")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    try:
        if args.reset:
            drop_all()
        create_all()
    except SQLAlchemyError:
        logger.exception("Schema initialisation failed")
        raise


if __name__ == "__main__":
    main()
