import unittest

from artist_backend.db import InMemoryDocumentStore
from artist_backend.errors import DuplicateError, NotFoundError, ValidationError
from artist_backend.models import (
    ARTISTS_COLLECTION,
    RATINGS_COLLECTION,
    USERS_COLLECTION,
)
from artist_backend.ratings import (
    AggregationEngine,
    RatingRecorder,
    average,
    round_half_away,
)


def seed_artist(db, artist_id, name=None, rating=0):
    db.set(
        ARTISTS_COLLECTION,
        artist_id,
        {
            "artistName": name or artist_id,
            "careerStartDate": "2010-01-01",
            "rating": rating,
        },
    )


def seed_user(db, user_id, ratings=None):
    db.set(
        USERS_COLLECTION,
        user_id,
        {
            "name": user_id,
            "email": f"{user_id}@example.com",
            "follow_artist": [],
            "ratings": ratings or {},
        },
    )


class RoundingTests(unittest.TestCase):
    def test_halves_round_away_from_zero(self):
        # Built-in round() would give 0.2 here (banker's rounding).
        self.assertEqual(round_half_away(0.25), 0.3)
        self.assertEqual(round_half_away(-0.25), -0.3)
        self.assertEqual(round_half_away(4.5), 4.5)

    def test_average(self):
        self.assertEqual(average([4, 5, 3]), 4.0)
        self.assertEqual(average([4, 4, 5]), 4.3)
        self.assertEqual(average([4, 5, 5]), 4.7)
        with self.assertRaises(ValueError):
            average([])


class RecomputeOneTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.engine = AggregationEngine(self.db)
        seed_artist(self.db, "a1")

    def _log(self, *ratings, artist_id="a1"):
        for value in ratings:
            self.db.add(RATINGS_COLLECTION, {"artist_id": artist_id, "rating": value})

    def test_mean_of_logged_ratings(self):
        self._log(4, 5, 3)
        self._log(1, artist_id="other")
        self.assertEqual(self.engine.recompute_one("a1"), 4.0)
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a1")["rating"], 4.0)

    def test_single_rating(self):
        self._log(5)
        self.assertEqual(self.engine.recompute_one("a1"), 5.0)

    def test_no_ratings_fails_without_writing(self):
        self.db.update(ARTISTS_COLLECTION, "a1", {"rating": 3.5})
        with self.assertRaises(NotFoundError) as ctx:
            self.engine.recompute_one("a1")
        self.assertIn("No ratings", ctx.exception.message)
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a1")["rating"], 3.5)

    def test_unknown_artist(self):
        with self.assertRaises(NotFoundError):
            self.engine.recompute_one("missing")

    def test_idempotent(self):
        self._log(2, 3)
        first = self.engine.recompute_one("a1")
        self.assertEqual(self.engine.recompute_one("a1"), first)


class RecomputeAllTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.engine = AggregationEngine(self.db)

    def test_empty_store_is_noop(self):
        self.assertEqual(self.engine.recompute_all(), {})

    def test_users_without_artists_is_noop(self):
        seed_user(self.db, "u1", {"gone": 4})
        self.assertEqual(self.engine.recompute_all(), {})

    def test_artists_without_users_is_noop(self):
        seed_artist(self.db, "a1", rating=2)
        self.assertEqual(self.engine.recompute_all(), {})
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a1")["rating"], 2)

    def test_groups_user_ratings_by_artist(self):
        seed_artist(self.db, "a1")
        seed_artist(self.db, "a2")
        seed_artist(self.db, "a3", rating=1.5)
        seed_user(self.db, "u1", {"a1": 4, "a2": 2})
        seed_user(self.db, "u2", {"a1": 5, "deleted": 1})
        seed_user(self.db, "u3", {"a1": 3})

        updated = self.engine.recompute_all()

        self.assertEqual(updated, {"a1": 4.0, "a2": 2.0})
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a1")["rating"], 4.0)
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a2")["rating"], 2.0)
        # Nobody rated a3, so its value is left alone.
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a3")["rating"], 1.5)
        self.assertEqual(self.engine.recompute_all(), updated)


class RatingRecorderTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.recorder = RatingRecorder(self.db)
        seed_artist(self.db, "a1")
        seed_user(self.db, "u1")
        seed_user(self.db, "u2")

    def test_records_in_mapping_and_log(self):
        value = self.recorder.record_rating("u1", "a1", 4)

        self.assertEqual(value, 4.0)
        self.assertEqual(self.db.get(USERS_COLLECTION, "u1")["ratings"], {"a1": 4})
        log = self.db.stream(RATINGS_COLLECTION)
        self.assertEqual([doc.data for doc in log], [{"artist_id": "a1", "rating": 4}])
        self.assertEqual(self.db.get(ARTISTS_COLLECTION, "a1")["rating"], 4.0)

    def test_average_across_users(self):
        self.recorder.record_rating("u1", "a1", 4)
        self.assertEqual(self.recorder.record_rating("u2", "a1", 5), 4.5)

    def test_second_rating_rejected(self):
        self.recorder.record_rating("u1", "a1", 4)
        with self.assertRaises(DuplicateError):
            self.recorder.record_rating("u1", "a1", 2)
        self.assertEqual(len(self.db.stream(RATINGS_COLLECTION)), 1)
        self.assertEqual(self.db.get(USERS_COLLECTION, "u1")["ratings"], {"a1": 4})

    def test_invalid_ratings(self):
        for bad in ("4", True, None, 0, 0.5, 6, float("nan")):
            with self.subTest(rating=bad):
                with self.assertRaises(ValidationError):
                    self.recorder.record_rating("u1", "a1", bad)
        self.assertEqual(self.db.stream(RATINGS_COLLECTION), [])

    def test_boundaries_accepted(self):
        seed_artist(self.db, "a2")
        self.assertEqual(self.recorder.record_rating("u1", "a1", 1), 1.0)
        self.assertEqual(self.recorder.record_rating("u1", "a2", 5.0), 5.0)

    def test_unknown_user_or_artist(self):
        with self.assertRaises(NotFoundError):
            self.recorder.record_rating("nobody", "a1", 3)
        with self.assertRaises(NotFoundError):
            self.recorder.record_rating("u1", "missing", 3)

    def test_user_id_required(self):
        with self.assertRaises(ValidationError):
            self.recorder.record_rating("", "a1", 3)


if __name__ == "__main__":
    unittest.main()
