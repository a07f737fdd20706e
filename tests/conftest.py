# tests/conftest.py
import threading

import pytest
import requests

from config import ProviderConfiguration
from metrics import metrics
from models import MediaItem
from tests.utils import API_KEY, FakeSession
from tmdb_image_provider import TmdbImageProvider


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def config():
    def _factory(**overrides):
        values = {"api_key": API_KEY, "preferred_languages": "de,en,null"}
        values.update(overrides)
        return ProviderConfiguration(**values)

    return _factory


@pytest.fixture
def movie():
    return MediaItem(item_type="Movie", name="Fight Club", provider_ids={"Tmdb": "550"})


@pytest.fixture
def series():
    return MediaItem(item_type="Series", name="Game of Thrones", provider_ids={"Tmdb": "1399"})


@pytest.fixture
def make_provider(config):
    """Provider wired to a FakeSession and a fixed configuration."""

    def _factory(session=None, **config_overrides):
        session = session or FakeSession()
        snapshot = config(**config_overrides)
        return TmdbImageProvider(lambda: snapshot, session=session), session

    return _factory


@pytest.fixture
def images_payload():
    return {
        "id": 550,
        "posters": [
            {"file_path": "/poster-de.jpg", "iso_639_1": "de", "width": 1000,
             "height": 1500, "vote_average": 5.3},
            {"file_path": "/poster-en.jpg", "iso_639_1": "en", "width": 2000,
             "height": 3000, "vote_average": 5.1},
        ],
        "backdrops": [
            {"file_path": "/backdrop.jpg", "iso_639_1": None, "width": 3840,
             "height": 2160, "vote_average": 6},
        ],
        "logos": [],
    }


@pytest.fixture
def release_blocked():
    """Event for FakeSession(block=...), always released at teardown."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def connection_error():
    return requests.ConnectionError(
        "HTTPSConnectionPool(host='api.themoviedb.org', port=443): Max retries exceeded "
        f"with url: /3/movie/550/images?api_key={API_KEY}&include_image_language=de,en,null"
    )
