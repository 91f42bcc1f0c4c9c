# src/infrastructure/db/session.py

import os
import socket
from contextlib import contextmanager

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

load_dotenv()


# -----------------------------
# Database URL
# -----------------------------
def _first_open_port(host: str, ports: tuple[int, ...]) -> int:
    for port in ports:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                return port
        except OSError:
            continue
    return ports[0]


def _default_database_url() -> str:
    """Assemble a Postgres URL from POSTGRES_* settings."""
    host = os.getenv("POSTGRES_HOST", "localhost")
    port = os.getenv("POSTGRES_PORT")
    if not port:
        # Side-by-side local installs often listen on 5433.
        port = _first_open_port(host, (5432, 5433))
    user = os.getenv("POSTGRES_USER", "postgres")
    password = os.getenv("POSTGRES_PASSWORD", "postgres")
    name = os.getenv("POSTGRES_DB", "cinema_booking")
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints on a thread pool.
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "pool_timeout": float(os.getenv("DB_POOL_TIMEOUT", "10")),
    }


DATABASE_URL = os.getenv("DATABASE_URL") or _default_database_url()


def enable_sqlite_savepoints(bind: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs nest inside the
    session transaction instead of committing it on RELEASE.
    """

    @event.listens_for(bind, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(bind, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine: Engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))
if DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)


class Base(DeclarativeBase):
    pass


# Objects stay readable after commit; route handlers serialize them afterwards.
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@contextmanager
def session_scope():
    """Transactional scope for scripts and jobs running outside a request."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
