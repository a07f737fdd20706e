"""
Shared data models for TMDB image lookup.

This module contains the host-facing media item, the normalized image
candidate returned to the host, and the transient TMDB response shapes,
kept separate to avoid circular imports between modules.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any

from constants import (
    MediaKind,
    ImageType,
    PROVIDER_NAME,
    TMDB_IMAGE_BASE,
)


class ResponseShapeError(ValueError):
    """Raised when a TMDB payload does not have the expected JSON shape."""


@dataclass
class MediaItem:
    """A movie or series as handed over by the host library."""
    item_type: str
    name: str = ""
    provider_ids: Dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> Optional[MediaKind]:
        return MediaKind.from_item_type(self.item_type)

    def get_provider_id(self, provider: str) -> Optional[str]:
        """Look up an external id by provider key (case-insensitive)."""
        wanted = provider.lower()
        for key, value in self.provider_ids.items():
            if key.lower() == wanted:
                return value
        return None


@dataclass(frozen=True)
class ImageCandidate:
    """Normalized remote image returned to the host."""
    url: str
    type: ImageType
    language: Optional[str] = None  # None means textless
    width: int = 0
    height: int = 0
    community_rating: float = 0.0
    provider_name: str = PROVIDER_NAME

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["type"] = self.type.value
        return data


def _lower_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {str(k).lower(): v for k, v in data.items()}


def _expect(value: Any, types: tuple, field_name: str, nullable: bool = False) -> Any:
    if value is None:
        if not nullable:
            raise ResponseShapeError(f"'{field_name}' must not be null")
        return None
    # bool is an int subclass but never a valid dimension or rating
    if isinstance(value, bool) or not isinstance(value, types):
        raise ResponseShapeError(
            f"'{field_name}' has unexpected type {type(value).__name__}"
        )
    return value


@dataclass
class TmdbImage:
    """Single raw image record from the TMDB images endpoint."""
    file_path: str = ""
    iso_639_1: Optional[str] = None
    width: int = 0
    height: int = 0
    vote_average: float = 0.0

    @classmethod
    def from_dict(cls, data: Any) -> "TmdbImage":
        """
        Create TmdbImage from a decoded JSON record.

        Field names are matched case-insensitively. Missing fields fall
        back to defaults; present fields with the wrong type raise
        ResponseShapeError.
        """
        if not isinstance(data, dict):
            raise ResponseShapeError(
                f"image record must be an object, got {type(data).__name__}"
            )
        fields = _lower_keys(data)
        return cls(
            file_path=_expect(fields.get("file_path"), (str,), "file_path", nullable=True) or "",
            iso_639_1=_expect(fields.get("iso_639_1"), (str,), "iso_639_1", nullable=True),
            width=_expect(fields.get("width", 0), (int,), "width"),
            height=_expect(fields.get("height", 0), (int,), "height"),
            vote_average=float(
                _expect(fields.get("vote_average", 0.0), (int, float), "vote_average")
            ),
        )

    def to_candidate(self, image_type: ImageType) -> ImageCandidate:
        """Map to a host image candidate with an absolute URL."""
        return ImageCandidate(
            url=TMDB_IMAGE_BASE + self.file_path,
            type=image_type,
            language=self.iso_639_1,
            width=self.width,
            height=self.height,
            community_rating=self.vote_average,
        )


@dataclass
class TmdbImageResponse:
    """
    Parsed body of GET /3/{movie|tv}/{id}/images.

    Any of the three collections may be absent upstream; they are
    represented as empty lists.
    """
    posters: List[TmdbImage] = field(default_factory=list)
    backdrops: List[TmdbImage] = field(default_factory=list)
    logos: List[TmdbImage] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "TmdbImageResponse":
        if not isinstance(data, dict):
            raise ResponseShapeError(
                f"response body must be an object, got {type(data).__name__}"
            )
        fields = _lower_keys(data)
        return cls(
            posters=cls._parse_collection(fields, "posters"),
            backdrops=cls._parse_collection(fields, "backdrops"),
            logos=cls._parse_collection(fields, "logos"),
        )

    @staticmethod
    def _parse_collection(fields: Dict[str, Any], name: str) -> List[TmdbImage]:
        records = fields.get(name)
        if records is None:
            return []
        if not isinstance(records, list):
            raise ResponseShapeError(f"'{name}' must be an array")
        return [TmdbImage.from_dict(record) for record in records]

    def to_candidates(self) -> List[ImageCandidate]:
        """
        Flatten into host candidates: posters, then backdrops, then logos.

        Upstream order is preserved within each collection; TMDB already
        ranked them by the requested language list.
        """
        candidates = [poster.to_candidate(ImageType.PRIMARY) for poster in self.posters]
        candidates.extend(backdrop.to_candidate(ImageType.BACKDROP) for backdrop in self.backdrops)
        candidates.extend(logo.to_candidate(ImageType.LOGO) for logo in self.logos)
        return candidates
