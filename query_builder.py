"""
TMDB images request construction.

Pure formatting: callers guarantee a non-empty id, API key, and language
list before calling build_request. Nothing here validates or performs I/O.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple
from urllib.parse import quote, quote_plus, urlencode

from constants import (
    MediaKind,
    LANGUAGE_DELIMITER,
    REDACTED,
    TMDB_API_ORIGIN,
    TMDB_API_VERSION,
)


@dataclass(frozen=True)
class RequestDescriptor:
    """
    A single upstream GET request.

    `params` keeps insertion order so the query string is stable:
    api_key first, include_image_language second.
    """
    endpoint: str
    params: Tuple[Tuple[str, str], ...]
    api_key: str
    method: str = "GET"

    @property
    def url(self) -> str:
        return f"{self.endpoint}?{_encode_params(self.params)}"

    @property
    def redacted_url(self) -> str:
        """URL safe to log: the API key is masked."""
        return self.redact(self.url)

    def redact(self, text: str) -> str:
        """Mask every occurrence of the API key in arbitrary text."""
        if not text or not self.api_key:
            return text
        text = text.replace(self.api_key, REDACTED)
        encoded = quote_plus(self.api_key)
        if encoded != self.api_key:
            text = text.replace(encoded, REDACTED)
        return text

    def __repr__(self) -> str:
        return f"RequestDescriptor({self.method} {self.redacted_url})"


def _encode_params(params: Sequence[Tuple[str, str]]) -> str:
    # Commas stay literal: TMDB reads include_image_language as "de,en,null"
    return urlencode(params, safe=LANGUAGE_DELIMITER)


def build_request(
    kind: MediaKind,
    external_id: str,
    languages: Sequence[str],
    api_key: str,
) -> RequestDescriptor:
    """
    Build the images request for a movie or series.

    Args:
        kind: Media kind; selects the movie or tv endpoint
        external_id: TMDB id of the item
        languages: Language tokens in priority order ("null" = textless)
        api_key: TMDB API key

    Returns:
        RequestDescriptor for GET /3/{movie|tv}/{id}/images
    """
    endpoint = (
        f"{TMDB_API_ORIGIN}/{TMDB_API_VERSION}/{kind.tmdb_path}/"
        f"{quote(str(external_id), safe='')}/images"
    )
    params = (
        ("api_key", api_key),
        ("include_image_language", LANGUAGE_DELIMITER.join(languages)),
    )
    return RequestDescriptor(endpoint=endpoint, params=params, api_key=api_key)
