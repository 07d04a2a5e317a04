"""Engine/session handle for the SQL-backed document store."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

log = logging.getLogger("marketplace.db")

Base = declarative_base()


class Database:
    """
    Explicit database handle.

    Created once at startup (app lifespan or CLI entry point), passed to
    repositories, and disposed at shutdown.
    """

    def __init__(self, url: str, *, echo: bool = False) -> None:
        url = (url or "").strip()
        if not url:
            raise RuntimeError("DATABASE_URL must be configured.")
        kwargs: dict = {"future": True, "echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_pre_ping"] = True
        self.url = url
        self.engine: Engine = create_engine(url, **kwargs)
        self._sessionmaker = sessionmaker(
            bind=self.engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
        )

    def create_all(self) -> None:
        from . import models  # noqa: F401  # register models on Base.metadata

        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        from . import models  # noqa: F401

        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session: Session = self._sessionmaker()
        try:
            yield session
        finally:
            session.close()

    def dispose(self) -> None:
        log.info("Disposing database engine")
        self.engine.dispose()
