import pytest
import requests

from src.domain.exceptions import ServiceUnavailableError
from src.infrastructure.catalog.tmdb_client import MovieCatalogClient


class StubResponse:
    def __init__(self, status_code: int, payload: dict | None = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._payload is None:
            raise requests.JSONDecodeError("Expecting value", self.text, 0)
        return self._payload


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []
        self.closed = False

    def get(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def test_get_movie_sends_bearer_key():
    session = StubSession(StubResponse(200, {"id": 550, "title": "Fight Club"}))
    client = MovieCatalogClient(api_key="key", base_url="https://catalog.test/3/", session=session)

    assert client.get_movie("550")["title"] == "Fight Club"
    url, kwargs = session.requests[0]
    assert url == "https://catalog.test/3/movie/550"
    assert kwargs["headers"]["Authorization"] == "Bearer key"
    assert kwargs["timeout"] == client.timeout


def test_missing_key_is_unavailable():
    client = MovieCatalogClient(api_key="", session=StubSession())
    with pytest.raises(ServiceUnavailableError):
        client.get_movie("550")


def test_http_error_is_unavailable():
    client = MovieCatalogClient(api_key="key", session=StubSession(StubResponse(404, {})))
    with pytest.raises(ServiceUnavailableError):
        client.get_movie("550")


def test_try_get_movie_degrades_to_none():
    session = StubSession(error=requests.ConnectionError("down"))
    client = MovieCatalogClient(api_key="key", session=session)
    assert client.try_get_movie("550") is None


def test_non_json_body_degrades_to_none():
    session = StubSession(StubResponse(200, text="<html>gateway</html>"))
    client = MovieCatalogClient(api_key="key", session=session)

    with pytest.raises(ServiceUnavailableError):
        client.get_movie("550")
    assert client.try_get_movie("550") is None


def test_catalog_dependency_closes_session(monkeypatch):
    from src.api.routes import routes

    session = StubSession()
    monkeypatch.setattr(routes, "MovieCatalogClient", lambda: MovieCatalogClient(api_key="key", session=session))

    dependency = routes.get_catalog_client()
    client = next(dependency)
    assert client.session is session
    with pytest.raises(StopIteration):
        next(dependency)
    assert session.closed is True
