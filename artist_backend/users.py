"""
User repository: registration, login, follows and profile lookup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from artist_backend.auth import AuthClient
from artist_backend.db import DocumentStore
from artist_backend.errors import (
    DuplicateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from artist_backend.models import ARTISTS_COLLECTION, USERS_COLLECTION, UserProfile

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user_id: str
    id_token: str


class UserRepository:
    def __init__(
        self,
        db: DocumentStore,
        auth_client: AuthClient,
        *,
        verify_login_password: bool = False,
    ):
        self.db = db
        self.auth = auth_client
        self.verify_login_password = verify_login_password

    def get(self, user_id: str) -> UserProfile:
        data = self.db.get(USERS_COLLECTION, user_id)
        if data is None:
            raise NotFoundError("User not found")
        return UserProfile.from_document(user_id, data)

    def register(self, name: str, email: str, password: str) -> str:
        if not email or not password:
            raise ValidationError("Email and password are required")
        uid = self.auth.create_user(email, password, display_name=name or None)
        profile = UserProfile(id=uid, name=name or "", email=email)
        self.db.set(USERS_COLLECTION, uid, profile.to_document())
        logger.info("Registered user %s", uid)
        return uid

    def login(self, email: str, password: str) -> LoginResult:
        """
        Resolve the identity for ``email`` and issue a custom token.

        Unless ``verify_login_password`` is set, the password is not checked
        here: credential verification is expected to happen upstream (the
        client SDK signs in with the token).
        """
        if not email:
            raise ValidationError("Email is required", field="email")
        if self.verify_login_password:
            self.auth.verify_password(email, password)
        else:
            logger.warning("Issuing token for %s without password verification", email)
        uid = self.auth.get_uid_by_email(email)
        return LoginResult(user_id=uid, id_token=self.auth.create_custom_token(uid))

    def list_all(self) -> list[UserProfile]:
        return [
            UserProfile.from_document(doc.id, doc.data)
            for doc in self.db.stream(USERS_COLLECTION)
        ]

    def follow(self, user_id: str, artist_id: str) -> list[str]:
        if not user_id:
            raise ValidationError("User ID is required", field="userId")
        user = self.get(user_id)
        if self.db.get(ARTISTS_COLLECTION, artist_id) is None:
            raise NotFoundError("Artist not found")
        if artist_id in user.follow_artist:
            raise DuplicateError("Artist already followed")

        follow_artist = [*user.follow_artist, artist_id]
        self.db.update(USERS_COLLECTION, user_id, {"follow_artist": follow_artist})
        logger.info("User %s followed artist %s", user_id, artist_id)
        return follow_artist

    def get_profile(self, token: str | None) -> UserProfile:
        if not token:
            raise UnauthorizedError("Unauthorized")
        uid = self.auth.verify_id_token(token)
        return self.get(uid)
