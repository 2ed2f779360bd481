"""
Rating recording and average-rating aggregation.

The flat ``ratings`` collection is the log ``recompute_one`` averages over;
``recompute_all`` rebuilds every artist from the per-user rating mappings.
Both writes of a new rating go through one batch, so the two sources agree.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from numbers import Real

from artist_backend.db import DocumentStore, WriteOp
from artist_backend.errors import DuplicateError, NotFoundError, ValidationError
from artist_backend.models import (
    ARTISTS_COLLECTION,
    RATINGS_COLLECTION,
    USERS_COLLECTION,
    RatingRecord,
    UserProfile,
)

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def round_half_away(value: float, digits: int = 1) -> float:
    """Round ``value`` to ``digits`` decimals, halves away from zero."""
    scale = 10**digits
    scaled = value * scale
    return math.copysign(math.floor(abs(scaled) + 0.5), scaled) / scale


def average(values: list[float]) -> float:
    if not values:
        raise ValueError("average of empty sequence")
    return round_half_away(sum(values) / len(values))


def validate_rating(rating) -> float:
    # bool is an int subclass; numeric strings are rejected too.
    if isinstance(rating, bool) or not isinstance(rating, Real):
        raise ValidationError(
            "Rating must be a number between 1 and 5.", field="rating"
        )
    if math.isnan(rating) or rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationError(
            "Rating must be a number between 1 and 5.", field="rating"
        )
    return rating


class AggregationEngine:
    """Recomputes the published ``rating`` of artists."""

    def __init__(self, db: DocumentStore):
        self.db = db

    def recompute_one(self, artist_id: str) -> float:
        if self.db.get(ARTISTS_COLLECTION, artist_id) is None:
            raise NotFoundError("Artist not found")

        ratings = [
            doc.data["rating"]
            for doc in self.db.where_equal(RATINGS_COLLECTION, "artist_id", artist_id)
            if isinstance(doc.data.get("rating"), Real)
        ]
        if not ratings:
            logger.info("No ratings found for artist %s", artist_id)
            raise NotFoundError("No ratings found for artist")

        value = average(ratings)
        self.db.update(ARTISTS_COLLECTION, artist_id, {"rating": value})
        logger.info("Average rating for artist %s: %s", artist_id, value)
        return value

    def recompute_all(self) -> dict[str, float]:
        """
        Rebuild every artist's average from the users' rating mappings.

        Artists nobody rated are left untouched, as are mapping entries for
        artists that no longer exist. Safe to run repeatedly.
        """
        artist_ids = {doc.id for doc in self.db.stream(ARTISTS_COLLECTION)}
        if not artist_ids:
            logger.info("No artists found; nothing to recompute")
            return {}

        contributions: dict[str, list[float]] = defaultdict(list)
        for doc in self.db.stream(USERS_COLLECTION):
            for artist_id, rating in (doc.data.get("ratings") or {}).items():
                if isinstance(rating, Real) and not isinstance(rating, bool):
                    contributions[artist_id].append(rating)

        updated: dict[str, float] = {}
        for artist_id, ratings in contributions.items():
            if artist_id not in artist_ids:
                logger.warning("Skipping ratings for missing artist %s", artist_id)
                continue
            value = average(ratings)
            self.db.update(ARTISTS_COLLECTION, artist_id, {"rating": value})
            updated[artist_id] = value

        logger.info("Recomputed average ratings for %d artists", len(updated))
        return updated


class RatingRecorder:
    """Records a user's single rating of an artist."""

    def __init__(self, db: DocumentStore, engine: AggregationEngine | None = None):
        self.db = db
        self.engine = engine or AggregationEngine(db)

    def record_rating(self, user_id: str, artist_id: str, rating) -> float:
        """
        Store the rating and return the artist's recomputed average.

        The duplicate check reads the user's mapping before the batch write,
        so two concurrent requests for the same pair can both pass it.
        """
        if not user_id:
            raise ValidationError("User ID is required", field="userId")

        user_data = self.db.get(USERS_COLLECTION, user_id)
        if user_data is None:
            raise NotFoundError("User not found")
        if self.db.get(ARTISTS_COLLECTION, artist_id) is None:
            raise NotFoundError("Artist not found")

        rating = validate_rating(rating)

        user = UserProfile.from_document(user_id, user_data)
        if artist_id in user.ratings:
            raise DuplicateError("User cannot rate the same artist twice.")

        self.db.commit(
            [
                WriteOp(
                    kind="update",
                    collection=USERS_COLLECTION,
                    doc_id=user_id,
                    data={f"ratings.{artist_id}": rating},
                ),
                WriteOp(
                    kind="add",
                    collection=RATINGS_COLLECTION,
                    data=RatingRecord(artist_id=artist_id, rating=rating).to_document(),
                ),
            ]
        )
        logger.info("User %s rated artist %s: %s", user_id, artist_id, rating)
        return self.engine.recompute_one(artist_id)
