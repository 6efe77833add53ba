from datetime import datetime, timezone
import uuid

from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import StaticPool

from .config import DB_URL


class Base(DeclarativeBase):
    pass


def _make_engine(url: str):
    kwargs = {}
    if url.startswith("sqlite"):
        # Sync routes run in a threadpool.
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            # Every connection to an in-memory DB would otherwise see an empty schema.
            kwargs["poolclass"] = StaticPool
    return create_engine(url, future=True, **kwargs)


engine = _make_engine(DB_URL)


def get_session():
    with Session(engine) as s:
        yield s


def commit_or_conflict(s: Session, detail: str) -> None:
    """Commit, mapping unique-constraint violations to 409."""
    try:
        s.commit()
    except IntegrityError:
        s.rollback()
        raise HTTPException(status_code=409, detail=detail)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
