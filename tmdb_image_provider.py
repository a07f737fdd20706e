"""
TMDB remote image provider with configurable language preferences.

Fetches posters, backdrops, and logos for movies and series from the TMDB
images endpoint. The configured language list is forwarded as
include_image_language so TMDB filters and ranks the images; results are
returned in upstream order.

Every failure (no API key, no TMDB id, network fault, non-2xx status,
malformed body, cancellation) is logged once and yields an empty list.
"""

import logging
from typing import Callable, List, Optional

import requests

from config import ProviderConfiguration
from constants import (
    PROVIDER_NAME,
    PROVIDER_ORDER,
    SUPPORTED_IMAGE_TYPES,
    TMDB_PROVIDER_KEY,
    ImageType,
)
from errors import (
    ConfigurationMissingError,
    FetchResult,
    IdentifierMissingError,
    ImageFetchError,
    MalformedResponseError,
    OperationCancelledError,
    TransportFailureError,
    UnsupportedItemError,
    UpstreamRejectedError,
)
from http_client import (
    CancellationToken,
    RequestCancelledError,
    SessionAwareComponent,
    cancellable_get,
)
from metrics import metrics
from models import ImageCandidate, MediaItem, ResponseShapeError, TmdbImageResponse
from query_builder import RequestDescriptor, build_request

logger = logging.getLogger(__name__)


class TmdbImageProvider(SessionAwareComponent):
    """
    Remote image provider for the host media library.

    Usage:
        provider = TmdbImageProvider(lambda: ProviderConfiguration(api_key="..."))
        if provider.supports(item):
            images = provider.get_images(item, CancellationToken())
    """

    name = PROVIDER_NAME
    order = PROVIDER_ORDER

    def __init__(
        self,
        config_source: Callable[[], ProviderConfiguration],
        session: requests.Session = None,
    ):
        """
        Initialize the provider.

        Args:
            config_source: Returns the current configuration snapshot;
                called once at the start of every fetch.
            session: Optional shared (host-owned) session.
        """
        self._config_source = config_source
        self.init_session(session)

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------

    def supports(self, item: MediaItem) -> bool:
        """True for movies and series only."""
        return item.kind is not None

    def get_supported_images(self, item: MediaItem) -> List[ImageType]:
        """Image types this provider can return, independent of the item."""
        return list(SUPPORTED_IMAGE_TYPES)

    # -------------------------------------------------------------------------
    # Image lookup
    # -------------------------------------------------------------------------

    def get_images(
        self,
        item: MediaItem,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[ImageCandidate]:
        """
        Get remote images for an item.

        Never raises; any failure results in an empty list.
        """
        try:
            config = self.current_config()
        except Exception as e:
            error = ConfigurationMissingError(f"TMDB configuration could not be read: {e}")
            return self._fail(item, error).images
        return self.fetch_images(item, config, cancel_token).images

    def current_config(self) -> ProviderConfiguration:
        """Read the configuration snapshot from the injected source."""
        return self._config_source()

    def fetch_images(
        self,
        item: MediaItem,
        config: ProviderConfiguration,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FetchResult:
        """
        Fetch images for an item using an explicit configuration snapshot.

        Args:
            item: Host media item
            config: Configuration snapshot for this call
            cancel_token: Optional cancellation signal

        Returns:
            FetchResult with the candidates, or the error that emptied it
        """
        try:
            descriptor = self._prepare_request(item, config)
            if config.debug_logging:
                logger.debug(
                    f"Requesting TMDB images for '{item.name}': {descriptor.redacted_url}"
                )
            data = self._execute(descriptor, cancel_token)
            images = self._parse(data, descriptor).to_candidates()
        except ImageFetchError as e:
            return self._fail(item, e)

        if config.debug_logging:
            logger.debug(
                f"TMDB returned {len(images)} images for '{item.name}'",
                extra={"item_name": item.name, "image_count": len(images)},
            )
        result = FetchResult(images=images)
        metrics.inc("image_fetch_total", labels={"outcome": result.outcome})
        return result

    def get_image_response(
        self,
        url: str,
        cancel_token: Optional[CancellationToken] = None,
    ) -> requests.Response:
        """
        Fetch the raw bytes of an image URL on the shared transport.

        The response is streamed and returned untouched; the caller owns
        it and must close it. Errors propagate.
        """
        return cancellable_get(self.session, url, cancel_token, stream=True)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _prepare_request(
        self,
        item: MediaItem,
        config: ProviderConfiguration,
    ) -> RequestDescriptor:
        kind = item.kind
        if kind is None:
            raise UnsupportedItemError(f"Unsupported item type '{item.item_type}'")

        if not config.has_api_key:
            raise ConfigurationMissingError("TMDB API key is not configured")

        tmdb_id = item.get_provider_id(TMDB_PROVIDER_KEY)
        if not tmdb_id:
            raise IdentifierMissingError("Item has no TMDB id")

        return build_request(kind, tmdb_id, config.language_list, config.api_key)

    def _execute(
        self,
        descriptor: RequestDescriptor,
        cancel_token: Optional[CancellationToken],
    ) -> object:
        """Perform the single GET and return the decoded JSON of a 2xx response."""
        try:
            with metrics.timer("tmdb_request_duration_ms"):
                response = cancellable_get(self.session, descriptor.url, cancel_token)
        except RequestCancelledError as e:
            raise OperationCancelledError(str(e)) from e
        except requests.RequestException as e:
            raise TransportFailureError(descriptor.redact(str(e))) from e

        with response:
            if not 200 <= response.status_code < 300:
                raise UpstreamRejectedError(
                    response.status_code, descriptor.redact(response.text)
                )
            try:
                return response.json()
            except ValueError as e:
                raise MalformedResponseError(descriptor.redact(str(e))) from e

    @staticmethod
    def _parse(data: object, descriptor: RequestDescriptor) -> TmdbImageResponse:
        try:
            return TmdbImageResponse.from_dict(data)
        except ResponseShapeError as e:
            raise MalformedResponseError(descriptor.redact(str(e))) from e

    def _fail(self, item: MediaItem, error: ImageFetchError) -> FetchResult:
        """Log the failure once, count it, and return the empty result."""
        self._report(item, error)
        result = FetchResult.failed(error)
        metrics.inc("image_fetch_total", labels={"outcome": result.outcome})
        return result

    def _report(self, item: MediaItem, error: ImageFetchError) -> None:
        """Emit the single log event for a failed fetch."""
        extra = {
            "item_name": item.name,
            "media_kind": item.kind.value if item.kind else None,
            "tmdb_id": item.get_provider_id(TMDB_PROVIDER_KEY),
            "error_kind": error.kind.value,
        }
        if isinstance(error, UpstreamRejectedError):
            extra["status_code"] = error.status_code
            message = (
                f"TMDB rejected image request for '{item.name}' with status "
                f"{error.status_code}: {error.body}"
            )
        elif isinstance(error, ConfigurationMissingError):
            message = f"{error}, skipping images for '{item.name}'"
        elif isinstance(error, IdentifierMissingError):
            message = f"No TMDB id for '{item.name}', skipping images"
        elif isinstance(error, OperationCancelledError):
            message = f"TMDB image request for '{item.name}' was cancelled"
        elif isinstance(error, TransportFailureError):
            message = f"TMDB image request for '{item.name}' failed: {error}"
        elif isinstance(error, MalformedResponseError):
            message = f"Could not parse TMDB image response for '{item.name}': {error}"
        else:
            message = f"Skipping images for '{item.name}': {error}"

        logger.log(error.level, message, extra=extra)
