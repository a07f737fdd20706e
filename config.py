"""
Provider configuration snapshot.

The engine never reads configuration from global state: the host hands
it an immutable ProviderConfiguration at call time. The HTTP service
builds one from the environment on every request.
"""

import os
from dataclasses import dataclass
from typing import List

from constants import (
    DEFAULT_PREFERRED_LANGUAGES,
    LANGUAGE_DELIMITER,
    REDACTED,
    _get_bool_env,
)


@dataclass(frozen=True)
class ProviderConfiguration:
    """
    Immutable configuration holder.

    Using frozen=True ensures a snapshot can be shared between concurrent
    fetches without any of them observing a partial update.
    """
    api_key: str = ""
    preferred_languages: str = DEFAULT_PREFERRED_LANGUAGES
    debug_logging: bool = False

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    @property
    def effective_languages(self) -> str:
        """
        Language preference list to send upstream.

        The configured value is used verbatim when non-blank; tokens are
        not validated or reordered.
        """
        if self.preferred_languages and self.preferred_languages.strip():
            return self.preferred_languages
        return DEFAULT_PREFERRED_LANGUAGES

    @property
    def language_list(self) -> List[str]:
        """Effective preference list split into tokens, in priority order."""
        return self.effective_languages.split(LANGUAGE_DELIMITER)

    def __repr__(self) -> str:
        key = REDACTED if self.api_key else ""
        return (
            f"ProviderConfiguration(api_key={key!r}, "
            f"preferred_languages={self.preferred_languages!r}, "
            f"debug_logging={self.debug_logging})"
        )

    @classmethod
    def from_env(cls) -> "ProviderConfiguration":
        """
        Build a snapshot from environment variables.

        Environment Variables:
            TMDB_API_KEY: TMDB API key (required for any lookup)
            TMDB_PREFERRED_LANGUAGES: Comma-separated priority list (default: de,en,null)
            TMDB_DEBUG_LOGGING: Verbose request tracing (default: false)
        """
        return cls(
            api_key=os.environ.get("TMDB_API_KEY", ""),
            preferred_languages=os.environ.get(
                "TMDB_PREFERRED_LANGUAGES", DEFAULT_PREFERRED_LANGUAGES
            ),
            debug_logging=_get_bool_env("TMDB_DEBUG_LOGGING", False),
        )
