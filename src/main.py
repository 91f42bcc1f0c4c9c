import logging
import os
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from src.api.errors import register_exception_handlers
from src.api.routes.admin_routes import router as admin_router
from src.api.routes.routes import router
from src.infrastructure.db.models import Base
from src.infrastructure.db.session import engine

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Cinema Booking Service")
app.include_router(router)
app.include_router(admin_router)
register_exception_handlers(app)


def wait_for_database(
    bind: Engine,
    attempts: int,
    delay_seconds: float,
    sleep=time.sleep,
) -> None:
    """Block until ``SELECT 1`` succeeds; re-raise after the last attempt."""
    for attempt in range(1, attempts + 1):
        try:
            with bind.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            if attempt >= attempts:
                logger.exception("Giving up on the database after %s attempts. Check DATABASE_URL.", attempts)
                raise
            logger.warning("Database unavailable (%s/%s), next try in %.1fs", attempt, attempts, delay_seconds)
            sleep(delay_seconds)
        else:
            logger.info("Database connection established on attempt %s.", attempt)
            return


@app.on_event("startup")
def on_startup() -> None:
    # The API container usually comes up before Postgres accepts connections.
    wait_for_database(
        engine,
        attempts=int(os.getenv("DB_CONNECT_MAX_RETRIES", "30")),
        delay_seconds=float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5")),
    )
    Base.metadata.create_all(bind=engine)
