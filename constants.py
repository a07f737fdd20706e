"""
Shared constants, enums, and configuration for the TMDB Multi-Language
image provider.

This module centralizes all magic strings/numbers and provides type-safe
enums for media kinds and image types.
"""

import os
from enum import Enum
from typing import Final, Optional


def _get_bool_env(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key, "").lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False
    return default

# =============================================================================
# Enums
# =============================================================================

class MediaKind(str, Enum):
    """
    Media kinds this provider can fetch images for.

    Inherits from str for JSON serialization compatibility.
    """
    MOVIE = "movie"
    SERIES = "series"

    @classmethod
    def from_item_type(cls, item_type: Optional[str]) -> Optional["MediaKind"]:
        """
        Resolve a host item type name ("Movie", "Series") to a MediaKind.

        Returns None for any other type (Episode, Season, BoxSet, ...).
        """
        if not item_type:
            return None
        mapping = {
            "movie": cls.MOVIE,
            "series": cls.SERIES,
        }
        return mapping.get(item_type.strip().lower())

    @property
    def tmdb_path(self) -> str:
        """TMDB API path segment for this kind."""
        return "movie" if self == MediaKind.MOVIE else "tv"


class ImageType(str, Enum):
    """Image roles as understood by the host library."""
    PRIMARY = "Primary"
    BACKDROP = "Backdrop"
    LOGO = "Logo"


# =============================================================================
# Provider Configuration
# =============================================================================

PROVIDER_NAME: Final = "TMDB Multi-Language"
PROVIDER_ORDER: Final = 0
PLUGIN_NAME: Final = "TMDB Multi-Language Images"
PLUGIN_ID: Final = "96afa51e-678e-42ac-b9f6-f3679173a23f"
PLUGIN_DESCRIPTION: Final = "Load images from TMDB with configurable language preferences"
PROVIDER_VERSION: Final = "1.0.0"

# Provider-id key the host stores the TMDB id under
TMDB_PROVIDER_KEY: Final = "Tmdb"

SUPPORTED_IMAGE_TYPES: Final = (ImageType.PRIMARY, ImageType.BACKDROP, ImageType.LOGO)


# =============================================================================
# Language Preferences
# =============================================================================

LANGUAGE_DELIMITER: Final = ","
# "null" asks TMDB for images without any language (textless)
DEFAULT_PREFERRED_LANGUAGES: Final = "de,en,null"


# =============================================================================
# External URLs
# =============================================================================

TMDB_API_ORIGIN: Final = "https://api.themoviedb.org"
TMDB_API_VERSION: Final = "3"
TMDB_IMAGE_ORIGIN: Final = "https://image.tmdb.org"
TMDB_IMAGE_BASE: Final = f"{TMDB_IMAGE_ORIGIN}/t/p/original"


# =============================================================================
# HTTP / Logging
# =============================================================================

POOL_CONNECTIONS: Final = 10
POOL_MAXSIZE: Final = 20
USER_AGENT: Final = f"tmdb-multilanguage-images/{PROVIDER_VERSION}"

REDACTED: Final = "***"
MAX_ERROR_BODY_LENGTH: Final = 500
