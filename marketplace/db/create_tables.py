"""Utility script to create the database schema: ``python -m marketplace.db.create_tables``."""
from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from marketplace.core.config import get_settings
from marketplace.core.log import configure_logging
from marketplace.db.session import Database

log = logging.getLogger("marketplace.db")


def create_all(url: str | None = None) -> None:
    db = Database(url or get_settings().database_url)
    try:
        db.create_all()
    finally:
        db.dispose()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    try:
        create_all()
        log.info("Database tables created successfully.")
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
