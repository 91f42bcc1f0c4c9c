import os

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["APP_ENV"] = "test"

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from src.api.dependencies import get_db
from src.api.routes.routes import get_catalog_client
from src.application.showtime_service import ShowtimeService
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import enable_sqlite_savepoints
from src.main import app


class FakeCatalog:
    def __init__(self, movies: dict | None = None):
        self.movies = movies or {}
        self.calls: list[str] = []

    def try_get_movie(self, movie_id: str):
        self.calls.append(movie_id)
        return self.movies.get(movie_id)


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_token(user_id: str = "user-1", role: str | None = None) -> str:
    return jwt.encode({"userId": user_id, "role": role}, "test-secret", algorithm="HS256")


def auth_headers(user_id: str = "user-1", role: str | None = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def now():
    return datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def seeded_showtime(db_session, now):
    """Showtime one day ahead with four regular seats A1-A4 priced 10."""
    service = ShowtimeService(db_session, clock=FixedClock(now))
    showtime = service.create_showtime(
        movie_id="550",
        start_time=now + timedelta(days=1),
        end_time=now + timedelta(days=1, minutes=139),
        theater="Hall 1",
        screen_type="2D",
        language="English",
        base_price=10,
    )
    seats = service.provision_seats(
        showtime.id,
        [{"row": "A", "seat_number": str(n), "price": 10} for n in range(1, 5)],
    )
    db_session.commit()
    return showtime, seats


@pytest.fixture
def catalog():
    return FakeCatalog({"550": {"id": 550, "title": "Fight Club"}})


@pytest.fixture
def client(session_factory, catalog):
    def override_get_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_catalog_client] = lambda: catalog
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def clock_at():
    return FixedClock


@pytest.fixture
def headers():
    return auth_headers
