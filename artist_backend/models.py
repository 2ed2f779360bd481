"""
Domain records and their Firestore document mapping.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from dacite import Config, from_dict

from artist_backend.json_utils import convert_keys

ARTISTS_COLLECTION = "artists"
USERS_COLLECTION = "users"
RATINGS_COLLECTION = "ratings"

_DACITE_CONFIG = Config(check_types=False)


@dataclass
class Artist:
    id: str
    artist_name: str
    career_start_date: str = ""
    stage_name: str = ""
    number_of_albums: int = 0
    social_media_links: list[str] = field(default_factory=list)
    record_label: str = ""
    publishing_house: str = ""
    artist_image: str = ""
    rating: float = 0.0
    # Legacy inline ratings from before the flat ratings log; read only.
    ratings: Optional[list] = None
    created_at: Optional[Any] = None

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "Artist":
        return from_dict(
            data_class=cls,
            data={**convert_keys(data, "camel_to_snake"), "id": doc_id},
            config=_DACITE_CONFIG,
        )

    def to_document(self) -> dict:
        data = asdict(self)
        data.pop("id")
        if data["ratings"] is None:
            data.pop("ratings")
        if data["created_at"] is None:
            data.pop("created_at")
        return convert_keys(data, "snake_to_camel")

    def as_response(self) -> dict:
        return {"id": self.id, **self.to_document()}


@dataclass
class UserProfile:
    id: str
    name: str = ""
    email: str = ""
    follow_artist: list[str] = field(default_factory=list)
    ratings: dict[str, float] = field(default_factory=dict)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "UserProfile":
        payload = {key: value for key, value in data.items() if value is not None}
        return from_dict(
            data_class=cls, data={**payload, "id": doc_id}, config=_DACITE_CONFIG
        )

    def to_document(self) -> dict:
        data = asdict(self)
        data.pop("id")
        return data


@dataclass
class RatingRecord:
    """One entry of the append-only flat ratings log."""

    artist_id: str
    rating: float

    def to_document(self) -> dict:
        return asdict(self)
