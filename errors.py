"""
Typed failure categories for the image fetch engine.

Every failure is recovered locally by the engine and turned into an empty
result; these types keep the categories inspectable for logging, metrics,
and tests. Each carries the log level it is reported at.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from constants import MAX_ERROR_BODY_LENGTH
from models import ImageCandidate


class FetchErrorKind(str, Enum):
    """Failure categories of a single image fetch."""
    UNSUPPORTED_ITEM = "unsupported_item"
    CONFIGURATION_MISSING = "configuration_missing"
    IDENTIFIER_MISSING = "identifier_missing"
    TRANSPORT_FAILURE = "transport_failure"
    UPSTREAM_REJECTED = "upstream_rejected"
    MALFORMED_RESPONSE = "malformed_response"
    OPERATION_CANCELLED = "operation_cancelled"


class ImageFetchError(Exception):
    """Base class for image fetch failures."""
    kind: FetchErrorKind
    level: int = logging.ERROR


class UnsupportedItemError(ImageFetchError):
    """Item is neither a movie nor a series."""
    kind = FetchErrorKind.UNSUPPORTED_ITEM
    level = logging.DEBUG


class ConfigurationMissingError(ImageFetchError):
    """No TMDB API key configured."""
    kind = FetchErrorKind.CONFIGURATION_MISSING
    level = logging.WARNING


class IdentifierMissingError(ImageFetchError):
    """Item has no TMDB id."""
    kind = FetchErrorKind.IDENTIFIER_MISSING
    level = logging.WARNING


class OperationCancelledError(ImageFetchError):
    """Caller cancelled the fetch."""
    kind = FetchErrorKind.OPERATION_CANCELLED
    level = logging.WARNING


class TransportFailureError(ImageFetchError):
    """Connection, DNS, TLS or other network-level fault."""
    kind = FetchErrorKind.TRANSPORT_FAILURE


class MalformedResponseError(ImageFetchError):
    """Body is not JSON, or not in the expected shape."""
    kind = FetchErrorKind.MALFORMED_RESPONSE


class UpstreamRejectedError(ImageFetchError):
    """TMDB answered with a non-success status code."""
    kind = FetchErrorKind.UPSTREAM_REJECTED

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = truncate_body(body)
        super().__init__(f"HTTP {status_code}: {self.body}")


def truncate_body(body: Optional[str], limit: int = MAX_ERROR_BODY_LENGTH) -> str:
    """Shorten a response body for inclusion in a log message."""
    if not body:
        return ""
    if len(body) <= limit:
        return body
    return body[:limit] + "..."


@dataclass
class FetchResult:
    """
    Outcome of one image fetch.

    `images` is empty whenever `error` is set.
    """
    images: List[ImageCandidate] = field(default_factory=list)
    error: Optional[ImageFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def outcome(self) -> str:
        """Metric label for this result."""
        return self.error.kind.value if self.error else "success"

    @classmethod
    def failed(cls, error: ImageFetchError) -> "FetchResult":
        return cls(images=[], error=error)
