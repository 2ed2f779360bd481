"""
Artist repository: validated create/update/delete/list over ``artists``.
"""

from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Optional

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from artist_backend.db import DocumentStore
from artist_backend.errors import (
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from artist_backend.models import ARTISTS_COLLECTION, Artist
from artist_backend.ratings import MAX_RATING, MIN_RATING
from artist_backend.storage import StorageClient, object_name_from_url

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


@dataclass
class ImageUpload:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def _parse_career_start(value: str, today: date) -> str:
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            "Career start date must be an ISO date.", field="careerStartDate"
        )
    if parsed.date() > today:
        raise ValidationError(
            "Career start date cannot be in the future.", field="careerStartDate"
        )
    return value.strip()


def _parse_album_count(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError(
            "Number of albums must be a positive number.", field="numberOfAlbums"
        )
    try:
        count = int(value)
    except (TypeError, ValueError):
        raise ValidationError(
            "Number of albums must be a whole number.", field="numberOfAlbums"
        )
    if isinstance(value, float) and value != count:
        raise ValidationError(
            "Number of albums must be a whole number.", field="numberOfAlbums"
        )
    if count <= 0:
        raise ValidationError(
            "Number of albums must be a positive number.", field="numberOfAlbums"
        )
    return count


def _parse_published_rating(value: Any) -> float:
    # 0 is the published value of an artist nobody has rated yet.
    try:
        rating = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Rating must be a number.", field="rating")
    if not math.isfinite(rating) or not (
        rating == 0 or MIN_RATING <= rating <= MAX_RATING
    ):
        raise ValidationError(
            "Rating must be 0 or a number between 1 and 5.", field="rating"
        )
    return rating


def _parse_links(value: Any) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [link.strip() for link in value if link and link.strip()]


class ArtistRepository:
    def __init__(
        self,
        db: DocumentStore,
        storage: StorageClient,
        *,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        clock: Callable[[], float] = time.time,
        today: Callable[[], date] = date.today,
    ):
        self.db = db
        self.storage = storage
        self.max_image_bytes = max_image_bytes
        self.clock = clock
        self.today = today

    def _is_unique(self, field_name: str, value: str) -> bool:
        return not self.db.where_equal(ARTISTS_COLLECTION, field_name, value, limit=1)

    def _validate(self, fields: dict, existing: Optional[Artist] = None) -> dict:
        """
        Return normalized document fields or raise ValidationError/DuplicateError.

        Uniqueness is checked with a query before the write; two concurrent
        requests with the same name can both pass.
        """
        artist_name = (fields.get("artistName") or "").strip()
        if not artist_name:
            raise ValidationError("Artist name is required", field="artistName")
        career_start = fields.get("careerStartDate") or ""
        if not str(career_start).strip():
            raise ValidationError(
                "Career start date is required", field="careerStartDate"
            )
        stage_name = (fields.get("stageName") or "").strip()

        if existing is None or artist_name != existing.artist_name:
            if not self._is_unique("artistName", artist_name):
                raise DuplicateError("Artist name already exists.", field="artistName")
        if stage_name and (existing is None or stage_name != existing.stage_name):
            if not self._is_unique("stageName", stage_name):
                raise DuplicateError("Stage name already exists.", field="stageName")

        return {
            "artistName": artist_name,
            "stageName": stage_name,
            "numberOfAlbums": _parse_album_count(fields.get("numberOfAlbums")),
            "careerStartDate": _parse_career_start(str(career_start), self.today()),
            "socialMediaLinks": _parse_links(fields.get("socialMediaLinks")),
            "recordLabel": (fields.get("recordLabel") or "").strip(),
            "publishingHouse": (fields.get("publishingHouse") or "").strip(),
        }

    def _upload_image(self, image: ImageUpload) -> str:
        if len(image.content) > self.max_image_bytes:
            raise ValidationError(
                f"Image exceeds the {self.max_image_bytes} byte limit.",
                field="artistImage",
            )
        extension = os.path.splitext(image.filename or "")[1]
        name = f"{int(self.clock() * 1000)}{extension}"
        # Raises UpstreamError on failure, before any record is written.
        return self.storage.upload_bytes(name, image.content, image.content_type)

    def _delete_image(self, url: str) -> None:
        name = object_name_from_url(url)
        if not name:
            return
        try:
            self.storage.delete(name)
        except Exception:
            logger.exception("Error deleting image %s", name)

    def get(self, artist_id: str) -> Artist:
        data = self.db.get(ARTISTS_COLLECTION, artist_id)
        if data is None:
            raise NotFoundError("Artist not found")
        return Artist.from_document(artist_id, data)

    def create(self, fields: dict, image: ImageUpload | None = None) -> Artist:
        document = self._validate(fields)
        document["artistImage"] = self._upload_image(image) if image else ""
        document["rating"] = 0
        document["createdAt"] = SERVER_TIMESTAMP
        artist_id = self.db.add(ARTISTS_COLLECTION, document)
        logger.info("Created artist %s (%s)", artist_id, document["artistName"])
        return self.get(artist_id)

    def update(
        self, artist_id: str, fields: dict, image: ImageUpload | None = None
    ) -> Artist:
        existing = self.get(artist_id)
        document = self._validate(fields, existing)

        rating = fields.get("rating")
        if rating is None or rating == "":
            document["rating"] = existing.rating
        else:
            document["rating"] = _parse_published_rating(rating)

        if image:
            document["artistImage"] = self._upload_image(image)
        self.db.update(ARTISTS_COLLECTION, artist_id, document)

        if image and existing.artist_image:
            self._delete_image(existing.artist_image)
        logger.info("Updated artist %s", artist_id)
        return self.get(artist_id)

    def delete(self, artist_id: str) -> None:
        existing = self.get(artist_id)
        if existing.artist_image:
            self._delete_image(existing.artist_image)
        self.db.delete(ARTISTS_COLLECTION, artist_id)
        logger.info("Deleted artist %s", artist_id)

    def list(self, page: int = 1, page_size: int = 20) -> list[Artist]:
        """
        Return one page ordered by document id.

        Every artist is listed, including records written without
        ``createdAt``. Offset paging: inserts between requests can shift
        page boundaries.
        """
        if page < 1 or page_size < 1:
            raise ValidationError("page and page_size must be positive")
        docs = self.db.list_page(
            ARTISTS_COLLECTION,
            offset=(page - 1) * page_size,
            limit=page_size,
        )
        return [Artist.from_document(doc.id, doc.data) for doc in docs]
