# app/db.py
from datetime import datetime, timezone
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase
from sqlalchemy.pool import NullPool
from app.settings import settings

class Base(DeclarativeBase):
    pass

def utcnow() -> datetime:
    # Naive UTC everywhere: SQLite drops tzinfo on the way back.
    return datetime.now(timezone.utc).replace(tzinfo=None)

def make_engine(url: str) -> Engine:
    is_sqlite = url.startswith("sqlite:")
    if is_sqlite:
        # SQLite: single-file DB for local dev and tests; enable WAL & foreign keys
        engine = create_engine(
            url,
            poolclass=NullPool,  # avoid locks in multi-process dev
            connect_args={
                "check_same_thread": False,  # needed for Uvicorn+Celery in dev
                "timeout": 30,  # writers queue up behind the lock instead of failing
            },
        )
        @event.listens_for(engine, "connect")
        def _sqlite_pragmas(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()
        return engine
    else:
        # MySQL / PostgreSQL
        return create_engine(
            url,
            pool_pre_ping=True,
            pool_size=5,
            max_overflow=5,
            pool_recycle=1800,                     # recycle every 30 min
        )

def make_session_factory(engine: Engine) -> sessionmaker:
    # expire_on_commit=False: stores hand detached rows back to callers
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

engine = make_engine(settings.SQLALCHEMY_DATABASE_URI)
SessionLocal = make_session_factory(engine)
