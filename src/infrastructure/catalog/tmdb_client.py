# src/infrastructure/catalog/tmdb_client.py

import logging
import os

import requests
from dotenv import load_dotenv

from src.domain.exceptions import ServiceUnavailableError

load_dotenv()

logger = logging.getLogger(__name__)

TMDB_BASE_URL = os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3")
TMDB_TIMEOUT_SECONDS = float(os.getenv("TMDB_TIMEOUT_SECONDS", "3"))


class MovieCatalogClient:
    """Thin read-only client for the external movie catalog (TMDB v3)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = TMDB_BASE_URL,
        timeout: float = TMDB_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("TMDB_READ_API_KEY")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_movie(self, movie_id: str) -> dict:
        if not self.api_key:
            raise ServiceUnavailableError("Movie catalog is not configured. Set TMDB_READ_API_KEY.")

        url = f"{self.base_url}/movie/{movie_id}"
        try:
            response = self.session.get(
                url,
                params={"language": "en-US"},
                headers={
                    "accept": "application/json",
                    "Authorization": f"Bearer {self.api_key}",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            # requests.JSONDecodeError subclasses ValueError.
            return response.json()
        except (requests.RequestException, ValueError) as exc:
            raise ServiceUnavailableError(f"Failed to fetch movie {movie_id} from catalog: {exc}") from exc

    def try_get_movie(self, movie_id: str) -> dict | None:
        """Best-effort enrichment: None instead of an error."""
        try:
            return self.get_movie(movie_id)
        except ServiceUnavailableError as exc:
            logger.warning("Skipping movie enrichment. movie_id=%s reason=%s", movie_id, exc)
            return None

    def close(self) -> None:
        self.session.close()
