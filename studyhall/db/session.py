# studyhall/db/session.py
import os
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from .base import Base
from ..core.config import settings

log = logging.getLogger("db")

# settings / .env first, SQLite if nothing is configured
DB_URL = settings.DB_URL or os.getenv("DB_URL") or "sqlite:///./studyhall.db"

def _make_engine(url_str: str):
    url = make_url(url_str)
    connect_args = {}
    kwargs = {}
    backend = url.get_backend_name()
    if backend.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if url.database in (None, "", ":memory:"):
            # one shared connection, otherwise every checkout sees an empty DB
            kwargs["poolclass"] = StaticPool
    elif backend.startswith("mysql"):
        # PyMySQL: charset belongs in the query string, pass it to connect() too
        connect_args["charset"] = "utf8mb4"

    if "poolclass" not in kwargs:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_recycle"] = 3600

    return create_engine(url_str, connect_args=connect_args, future=True, **kwargs)

engine = _make_engine(DB_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

def init_db():
    """Create tables; when MySQL is unreachable and FALLBACK_SQLITE is on, fall back to SQLite."""
    global engine

    # models must be imported so their tables are registered on Base.metadata
    from .. import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=engine)
        log.info("DB init OK with %s", engine.url.render_as_string(hide_password=True))
        return
    except OperationalError as e:
        backend = engine.url.get_backend_name()
        log.error("DB init failed on %s: %s", backend, e)

        if backend.startswith("mysql") and settings.FALLBACK_SQLITE:
            fallback_url = "sqlite:///./studyhall.db"
            log.warning("Falling back to SQLite: %s", fallback_url)
            engine = _make_engine(fallback_url)
            SessionLocal.configure(bind=engine)
            Base.metadata.create_all(bind=engine)
        else:
            raise

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
