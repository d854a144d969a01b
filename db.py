# db.py
# Role: Database bootstrap for the SMS expense tracker.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists before the app starts.

"""
Database setup for the SMS expense tracker.

- Uses DATABASE_URL from the environment when set (see app/settings.py)
- Otherwise falls back to SQLite at: <project_root>/database/expenses.db
"""

import os
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from app.settings import DATABASE_URL

# Base directory of the project (where this module lives)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Folder for the default SQLite DB
DB_DIR = os.path.join(BASE_DIR, "database")
DB_PATH = os.path.join(DB_DIR, "expenses.db")


def make_engine(url: str | None = None, **kwargs):
    """
    Build an engine for `url` (or the configured/default URL).

    For SQLite we need check_same_thread=False: FastAPI runs sync routes,
    including the bulk scan, in its worker thread pool.
    """
    if url is None:
        url = DATABASE_URL or f"sqlite:///{DB_PATH}"

    if url.startswith("sqlite"):
        if url.startswith("sqlite:///") and ":memory:" not in url:
            os.makedirs(os.path.dirname(os.path.abspath(url[len("sqlite:///"):])), exist_ok=True)
        kwargs.setdefault("connect_args", {"check_same_thread": False, "timeout": 15})
        engine = create_engine(url, **kwargs)
        _enable_sqlite_savepoints(engine)
        return engine

    return create_engine(url, **kwargs)


def _enable_sqlite_savepoints(engine) -> None:
    """
    pysqlite opens transactions lazily and breaks SAVEPOINT; let SQLAlchemy
    emit BEGIN itself so session.begin_nested() works.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent writers wait
    on the busy timeout instead of deadlocking on a read-to-write upgrade.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = make_engine()

# Standard session factory used via dependency injection (see app/deps.py:get_db)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
