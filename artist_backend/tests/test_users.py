import unittest
from unittest.mock import patch

from artist_backend.auth import InMemoryAuthClient
from artist_backend.db import InMemoryDocumentStore
from artist_backend.errors import (
    DuplicateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from artist_backend.models import ARTISTS_COLLECTION, USERS_COLLECTION
from artist_backend.users import UserRepository


class UserRepositoryTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDocumentStore()
        self.auth = InMemoryAuthClient()
        self.repo = UserRepository(self.db, self.auth)
        self.db.set(
            ARTISTS_COLLECTION,
            "a1",
            {"artistName": "Fela Kuti", "careerStartDate": "1958-01-01"},
        )

    def test_register_creates_empty_profile(self):
        uid = self.repo.register("Ada", "ada@example.com", "secret123")
        self.assertEqual(
            self.db.get(USERS_COLLECTION, uid),
            {
                "name": "Ada",
                "email": "ada@example.com",
                "follow_artist": [],
                "ratings": {},
            },
        )

    def test_register_duplicate_email(self):
        self.repo.register("Ada", "ada@example.com", "secret123")
        with self.assertRaises(DuplicateError):
            self.repo.register("Ada 2", "ada@example.com", "other")

    def test_register_requires_credentials(self):
        with self.assertRaises(ValidationError):
            self.repo.register("Ada", "", "secret123")

    def test_login_issues_token_without_password_check(self):
        uid = self.repo.register("Ada", "ada@example.com", "secret123")
        with self.assertLogs("artist_backend.users", level="WARNING"):
            result = self.repo.login("ada@example.com", "not-the-password")
        self.assertEqual(result.user_id, uid)
        self.assertEqual(self.auth.verify_id_token(result.id_token), uid)

    def test_login_unknown_email(self):
        with self.assertRaises(NotFoundError):
            self.repo.login("nobody@example.com", "x")

    def test_login_with_password_verification(self):
        repo = UserRepository(self.db, self.auth, verify_login_password=True)
        uid = repo.register("Ada", "ada@example.com", "secret123")
        self.assertEqual(repo.login("ada@example.com", "secret123").user_id, uid)
        with self.assertRaises(UnauthorizedError):
            repo.login("ada@example.com", "wrong")

    def test_list_all(self):
        self.repo.register("Ada", "ada@example.com", "secret123")
        self.repo.register("Bo", "bo@example.com", "secret123")
        self.assertEqual(
            sorted(user.email for user in self.repo.list_all()),
            ["ada@example.com", "bo@example.com"],
        )

    def test_follow_twice(self):
        uid = self.repo.register("Ada", "ada@example.com", "secret123")
        self.assertEqual(self.repo.follow(uid, "a1"), ["a1"])
        with self.assertRaises(DuplicateError):
            self.repo.follow(uid, "a1")
        self.assertEqual(self.repo.get(uid).follow_artist, ["a1"])

    def test_follow_errors(self):
        uid = self.repo.register("Ada", "ada@example.com", "secret123")
        with self.assertRaises(ValidationError):
            self.repo.follow("", "a1")
        with self.assertRaises(NotFoundError):
            self.repo.follow("nobody", "a1")
        with self.assertRaises(NotFoundError):
            self.repo.follow(uid, "missing")

    def test_get_profile(self):
        uid = self.repo.register("Ada", "ada@example.com", "secret123")
        token = self.auth.create_custom_token(uid)
        profile = self.repo.get_profile(token)
        self.assertEqual(profile.id, uid)
        self.assertEqual(profile.email, "ada@example.com")

    def test_get_profile_requires_valid_token(self):
        with self.assertRaises(UnauthorizedError):
            self.repo.get_profile(None)
        with self.assertRaises(UnauthorizedError):
            self.repo.get_profile("forged")

    def test_get_profile_for_deleted_user(self):
        uid = self.repo.register("Ada", "ada@example.com", "secret123")
        token = self.auth.create_custom_token(uid)
        self.db.delete(USERS_COLLECTION, uid)
        with self.assertRaises(NotFoundError):
            self.repo.get_profile(token)


class FirebaseAuthClientTests(unittest.TestCase):
    @patch("artist_backend.auth.auth")
    def test_verify_id_token_failure_is_unauthorized(self, mock_auth):
        from artist_backend.auth import FirebaseAuthClient

        mock_auth.InvalidIdTokenError = type("InvalidIdTokenError", (Exception,), {})
        mock_auth.CertificateFetchError = type("CertificateFetchError", (Exception,), {})
        mock_auth.verify_id_token.side_effect = mock_auth.InvalidIdTokenError("bad")

        with self.assertRaises(UnauthorizedError):
            FirebaseAuthClient().verify_id_token("token")

    @patch("artist_backend.auth.auth")
    def test_custom_token_is_decoded(self, mock_auth):
        from artist_backend.auth import FirebaseAuthClient

        mock_auth.TokenSignError = type("TokenSignError", (Exception,), {})
        mock_auth.create_custom_token.return_value = b"abc.def"
        self.assertEqual(FirebaseAuthClient().create_custom_token("uid"), "abc.def")

    @patch("artist_backend.auth.requests.post")
    def test_verify_password_rejects_bad_credentials(self, mock_post):
        from artist_backend.auth import FirebaseAuthClient

        mock_post.return_value.status_code = 400
        client = FirebaseAuthClient(web_api_key="key")
        with self.assertRaises(UnauthorizedError):
            client.verify_password("ada@example.com", "wrong")
        _, kwargs = mock_post.call_args
        self.assertEqual(kwargs["params"], {"key": "key"})


if __name__ == "__main__":
    unittest.main()
