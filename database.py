# database.py

import os
from dotenv import load_dotenv

# Load environment variables before importing config
ENV = os.getenv('ENV', 'production')

if ENV == 'testing':
    load_dotenv('.env.test')
else:
    load_dotenv('.env')

from config import ProductionConfig, TestingConfig

if ENV == 'testing':
    app_config = TestingConfig()
else:
    app_config = ProductionConfig()

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Use DATABASE_URL from configuration
SQLALCHEMY_DATABASE_URL = app_config.DATABASE_URL

# Execution option marking a connection whose transaction must take the write lock up front
BEGIN_IMMEDIATE = "begin_immediate"


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///") or ":memory:" in url


def _configure_sqlite(engine, in_memory: bool):
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself so write transactions can ask for IMMEDIATE
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON;")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(BEGIN_IMMEDIATE):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(url: str):
    """
    Create an engine for the given database URL.

    SQLite gets a generous busy timeout, WAL journaling for file databases and a
    single shared connection for in-memory databases.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    in_memory = _is_memory_url(url)
    kwargs = {
        "connect_args": {
            "check_same_thread": False,  # Needed for SQLite
            "timeout": 30,               # Increase timeout to prevent 'database is locked' errors
        },
    }
    if in_memory:
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    _configure_sqlite(engine, in_memory)
    return engine


engine = build_engine(SQLALCHEMY_DATABASE_URL)

# Create a configured "SessionLocal" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create a base class for declarative class definitions
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def begin_write(db: Session):
    """
    Start a fresh transaction on ``db`` that holds the database write lock.

    Whatever the session had open (typically reads) is committed first, so the
    checks made inside the new transaction see the latest committed state.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={BEGIN_IMMEDIATE: True})


@contextmanager
def write_transaction(db: Session):
    """Run the enclosed block as one atomic write; commit on success, roll back on any error."""
    begin_write(db)
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database commit failed: {e}")
        raise
    except Exception:
        db.rollback()
        raise
