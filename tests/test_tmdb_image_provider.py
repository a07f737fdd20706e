# tests/test_tmdb_image_provider.py
import logging
import threading

import pytest

from config import ProviderConfiguration
from constants import ImageType
from errors import FetchErrorKind
from http_client import CancellationToken
from metrics import metrics
from models import MediaItem
from tests.utils import API_KEY, FakeResponse, FakeSession
from tmdb_image_provider import TmdbImageProvider

LOGGER = "tmdb_image_provider"


def _events(caplog, level):
    return [r for r in caplog.records if r.name == LOGGER and r.levelno == level]


def _warnings_or_worse(caplog):
    return [r for r in caplog.records if r.levelno >= logging.WARNING]


# -------- Capabilities --------

@pytest.mark.parametrize("item_type, expected", [
    ("Movie", True),
    ("Series", True),
    ("Episode", False),
    ("Season", False),
    ("BoxSet", False),
    ("", False),
])
def test_supports(make_provider, item_type, expected):
    provider, _ = make_provider()

    assert provider.supports(MediaItem(item_type)) is expected


def test_supported_images_are_fixed(make_provider):
    provider, _ = make_provider()

    for item_type in ("Movie", "Series", "Episode"):
        assert provider.get_supported_images(MediaItem(item_type)) == [
            ImageType.PRIMARY, ImageType.BACKDROP, ImageType.LOGO,
        ]


def test_provider_identity(make_provider):
    provider, _ = make_provider()

    assert provider.name == "TMDB Multi-Language"
    assert provider.order == 0


# -------- Success path --------

def test_two_posters_one_backdrop(make_provider, movie, images_payload, caplog):
    session = FakeSession(FakeResponse.json_body(images_payload))
    provider, _ = make_provider(session)

    with caplog.at_level(logging.DEBUG):
        images = provider.get_images(movie)

    assert [i.type for i in images] == [ImageType.PRIMARY, ImageType.PRIMARY, ImageType.BACKDROP]
    poster1, poster2, backdrop = images
    assert poster1.url == "https://image.tmdb.org/t/p/original/poster-de.jpg"
    assert (poster1.language, poster1.width, poster1.height, poster1.community_rating) == ("de", 1000, 1500, 5.3)
    assert poster2.url == "https://image.tmdb.org/t/p/original/poster-en.jpg"
    assert poster2.language == "en"
    assert backdrop.url == "https://image.tmdb.org/t/p/original/backdrop.jpg"
    assert backdrop.language is None
    assert (backdrop.width, backdrop.height, backdrop.community_rating) == (3840, 2160, 6.0)
    assert all(i.provider_name == "TMDB Multi-Language" for i in images)
    assert _warnings_or_worse(caplog) == []
    assert metrics.get_counter("image_fetch_total", labels={"outcome": "success"}) == 1


def test_exactly_one_request_with_expected_url(make_provider, movie):
    provider, session = make_provider()

    provider.get_images(movie)

    assert len(session.calls) == 1
    url, kwargs = session.calls[0]
    assert url == (
        "https://api.themoviedb.org/3/movie/550/images"
        f"?api_key={API_KEY}&include_image_language=de,en,null"
    )
    assert kwargs["timeout"] is None


def test_series_uses_tv_endpoint(make_provider, series):
    provider, session = make_provider(preferred_languages="en,null")

    provider.get_images(series)

    url, _ = session.calls[0]
    assert url.startswith("https://api.themoviedb.org/3/tv/1399/images?")
    assert url.endswith("include_image_language=en,null")


def test_blank_language_config_uses_default(make_provider, movie):
    provider, session = make_provider(preferred_languages=" ")

    provider.get_images(movie)

    url, _ = session.calls[0]
    assert url.endswith("include_image_language=de,en,null")


def test_empty_response_object_yields_no_images(make_provider, movie, caplog):
    provider, _ = make_provider(FakeSession(FakeResponse.json_body({"id": 550})))

    result = provider.fetch_images(movie, provider.current_config())

    assert result.ok
    assert result.images == []
    assert _warnings_or_worse(caplog) == []


def test_debug_logging_never_contains_api_key(make_provider, movie, caplog):
    provider, _ = make_provider(debug_logging=True)

    with caplog.at_level(logging.DEBUG, logger=LOGGER):
        provider.get_images(movie)

    debug_messages = [r.getMessage() for r in _events(caplog, logging.DEBUG)]
    assert any("api_key=***" in m for m in debug_messages)
    assert all(API_KEY not in m for m in debug_messages)


def test_config_snapshot_read_per_call(movie):
    snapshots = iter([
        ProviderConfiguration(api_key=""),
        ProviderConfiguration(api_key=API_KEY),
    ])
    session = FakeSession()
    provider = TmdbImageProvider(lambda: next(snapshots), session=session)

    provider.get_images(movie)
    provider.get_images(movie)

    assert len(session.calls) == 1


# -------- Short circuits (no network) --------

def test_unsupported_item_makes_no_request(make_provider, caplog):
    provider, session = make_provider()
    episode = MediaItem("Episode", name="Pilot", provider_ids={"Tmdb": "62085"})

    images = provider.get_images(episode)

    assert images == []
    assert session.calls == []
    assert _warnings_or_worse(caplog) == []


@pytest.mark.parametrize("api_key", ["", "   ", "\t\n"])
def test_blank_api_key(make_provider, movie, caplog, api_key):
    provider, session = make_provider(api_key=api_key)

    result = provider.fetch_images(movie, provider.current_config())

    assert result.images == []
    assert result.error.kind is FetchErrorKind.CONFIGURATION_MISSING
    assert session.calls == []
    assert len(_events(caplog, logging.WARNING)) == 1
    assert len(_warnings_or_worse(caplog)) == 1


@pytest.mark.parametrize("provider_ids", [{}, {"Tmdb": ""}, {"Imdb": "tt0137523"}])
def test_missing_tmdb_id(make_provider, caplog, provider_ids):
    provider, session = make_provider()
    item = MediaItem("Movie", name="Unknown", provider_ids=provider_ids)

    result = provider.fetch_images(item, provider.current_config())

    assert result.images == []
    assert result.error.kind is FetchErrorKind.IDENTIFIER_MISSING
    assert session.calls == []
    assert len(_events(caplog, logging.WARNING)) == 1
    assert len(_warnings_or_worse(caplog)) == 1


# -------- Upstream failures --------

def test_http_404(make_provider, movie, caplog):
    body = '{"success":false,"status_code":34,"status_message":"The resource you requested could not be found."}'
    provider, _ = make_provider(FakeSession(FakeResponse(status_code=404, text=body)))

    result = provider.fetch_images(movie, provider.current_config())

    assert result.images == []
    assert result.error.kind is FetchErrorKind.UPSTREAM_REJECTED
    assert result.error.status_code == 404
    errors = _events(caplog, logging.ERROR)
    assert len(errors) == 1
    assert "404" in errors[0].getMessage()
    assert "could not be found" in errors[0].getMessage()
    assert errors[0].status_code == 404
    assert len(_warnings_or_worse(caplog)) == 1


def test_http_401_body_is_redacted(make_provider, movie, caplog):
    body = f'{{"status_message":"Invalid API key: {API_KEY}"}}'
    provider, _ = make_provider(FakeSession(FakeResponse(status_code=401, text=body)))

    assert provider.get_images(movie) == []

    assert all(API_KEY not in r.getMessage() for r in caplog.records)


def test_long_error_body_is_truncated(make_provider, movie, caplog):
    provider, _ = make_provider(FakeSession(FakeResponse(status_code=500, text="x" * 5000)))

    result = provider.fetch_images(movie, provider.current_config())

    assert len(result.error.body) == 503
    assert result.error.body.endswith("...")


def test_body_decoded_with_response_json(make_provider, movie, images_payload):
    upstream = FakeResponse(status_code=200, text="")
    upstream.json = lambda: images_payload
    provider, _ = make_provider(FakeSession(upstream))

    result = provider.fetch_images(movie, provider.current_config())

    assert result.ok
    assert len(result.images) == 3
    assert upstream.closed is True


def test_malformed_body(make_provider, movie, caplog):
    provider, _ = make_provider(FakeSession(FakeResponse(status_code=200, text="<html>oops</html>")))

    result = provider.fetch_images(movie, provider.current_config())

    assert result.images == []
    assert result.error.kind is FetchErrorKind.MALFORMED_RESPONSE
    errors = _events(caplog, logging.ERROR)
    assert len(errors) == 1
    assert errors[0].error_kind == "malformed_response"
    assert metrics.get_counter("image_fetch_total", labels={"outcome": "transport_failure"}) == 0
    assert metrics.get_counter("image_fetch_total", labels={"outcome": "malformed_response"}) == 1


def test_wrong_shape_is_malformed(make_provider, movie):
    payload = {"posters": [{"file_path": "/a.jpg", "width": "wide"}]}
    provider, _ = make_provider(FakeSession(FakeResponse.json_body(payload)))

    result = provider.fetch_images(movie, provider.current_config())

    assert result.error.kind is FetchErrorKind.MALFORMED_RESPONSE


def test_transport_failure(make_provider, movie, caplog, connection_error):
    provider, _ = make_provider(FakeSession(error=connection_error))

    result = provider.fetch_images(movie, provider.current_config())

    assert result.images == []
    assert result.error.kind is FetchErrorKind.TRANSPORT_FAILURE
    errors = _events(caplog, logging.ERROR)
    assert len(errors) == 1
    assert "Max retries exceeded" in errors[0].getMessage()
    assert API_KEY not in errors[0].getMessage()


def test_config_source_failure_yields_empty_list(movie, caplog):
    def _broken_source():
        raise RuntimeError("settings store unavailable")

    session = FakeSession()
    provider = TmdbImageProvider(_broken_source, session=session)

    images = provider.get_images(movie)

    assert images == []
    assert session.calls == []
    warnings = _events(caplog, logging.WARNING)
    assert len(warnings) == 1
    assert "settings store unavailable" in warnings[0].getMessage()
    assert metrics.get_counter(
        "image_fetch_total", labels={"outcome": "configuration_missing"}
    ) == 1


# -------- Cancellation --------

def test_cancelled_before_request(make_provider, movie, caplog):
    provider, session = make_provider()
    token = CancellationToken()
    token.cancel()

    result = provider.fetch_images(movie, provider.current_config(), token)

    assert result.error.kind is FetchErrorKind.OPERATION_CANCELLED
    assert session.calls == []
    assert len(_events(caplog, logging.WARNING)) == 1
    assert _events(caplog, logging.ERROR) == []


def test_cancelled_mid_flight(make_provider, movie, images_payload, caplog, release_blocked):
    session = FakeSession(FakeResponse.json_body(images_payload), block=release_blocked)
    provider, _ = make_provider(session)
    token = CancellationToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()

    images = provider.get_images(movie, token)

    timer.join()
    assert images == []
    assert len(session.calls) == 1
    assert len(_events(caplog, logging.WARNING)) == 1
    assert _events(caplog, logging.ERROR) == []
    assert metrics.get_counter("image_fetch_total", labels={"outcome": "operation_cancelled"}) == 1


def test_token_not_fired_returns_images(make_provider, movie, images_payload):
    provider, _ = make_provider(FakeSession(FakeResponse.json_body(images_payload)))

    images = provider.get_images(movie, CancellationToken())

    assert len(images) == 3


def _cancel_once_sent(session, token):
    session.started.wait(2)
    token.cancel()


def test_cancelled_stalled_requests_do_not_starve_later_fetches(
    make_provider, movie, images_payload, release_blocked
):
    stalled, stalled_session = make_provider(FakeSession(block=release_blocked))
    for _ in range(20):
        token = CancellationToken()
        stalled_session.started.clear()
        threading.Thread(target=_cancel_once_sent, args=(stalled_session, token)).start()
        result = stalled.fetch_images(movie, stalled.current_config(), token)
        assert result.error.kind is FetchErrorKind.OPERATION_CANCELLED
    assert len(stalled_session.calls) == 20

    healthy, healthy_session = make_provider(FakeSession(FakeResponse.json_body(images_payload)))
    token = CancellationToken()
    timer = threading.Timer(2.0, token.cancel)
    timer.start()
    try:
        result = healthy.fetch_images(movie, healthy.current_config(), token)
    finally:
        timer.cancel()

    assert result.ok
    assert len(result.images) == 3
    assert len(healthy_session.calls) == 1


# -------- Raw image pass-through --------

def test_get_image_response_streams_through_session(make_provider):
    upstream = FakeResponse(status_code=200, content=b"\x89PNG", headers={"Content-Type": "image/png"})
    provider, session = make_provider(FakeSession(upstream))

    response = provider.get_image_response("https://image.tmdb.org/t/p/original/a.png")

    assert response is upstream
    url, kwargs = session.calls[0]
    assert url == "https://image.tmdb.org/t/p/original/a.png"
    assert kwargs["stream"] is True


def test_injected_session_is_not_closed(make_provider):
    provider, session = make_provider()

    provider.close()

    assert session.closed is False
