"""
Identity provider abstraction over Firebase Auth, plus an in-memory stand-in.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import requests
from firebase_admin import auth
from firebase_admin.exceptions import FirebaseError

from artist_backend.errors import (
    DuplicateError,
    NotFoundError,
    UnauthorizedError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

PASSWORD_SIGN_IN_URL = (
    "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
)


class AuthClient(Protocol):
    """Operations the API needs from the identity provider."""

    def create_user(self, email: str, password: str, display_name: str | None = None) -> str:
        ...

    def get_uid_by_email(self, email: str) -> str:
        ...

    def create_custom_token(self, uid: str) -> str:
        ...

    def verify_id_token(self, token: str) -> str:
        ...

    def verify_password(self, email: str, password: str) -> None:
        ...


@dataclass
class InMemoryAuthClient:
    """
    Test double for the identity provider.

    Custom tokens issued here are also accepted by ``verify_id_token``; with
    Firebase the client first exchanges a custom token for an ID token.
    """

    users: dict = field(default_factory=dict)
    tokens: dict = field(default_factory=dict)

    def create_user(self, email: str, password: str, display_name: str | None = None) -> str:
        if not email or not password:
            raise ValidationError("Email and password are required")
        if email in self.users:
            raise DuplicateError("Email already registered", field="email")
        uid = uuid.uuid4().hex[:28]
        self.users[email] = {"uid": uid, "password": password}
        return uid

    def get_uid_by_email(self, email: str) -> str:
        user = self.users.get(email)
        if not user:
            raise NotFoundError("User not found")
        return user["uid"]

    def create_custom_token(self, uid: str) -> str:
        token = f"token-{uuid.uuid4().hex}"
        self.tokens[token] = uid
        return token

    def verify_id_token(self, token: str) -> str:
        uid = self.tokens.get(token)
        if not uid:
            raise UnauthorizedError("Unauthorized")
        return uid

    def verify_password(self, email: str, password: str) -> None:
        user = self.users.get(email)
        if not user or user["password"] != password:
            raise UnauthorizedError("Invalid email or password")

    def reset(self) -> None:
        self.users.clear()
        self.tokens.clear()


@dataclass
class FirebaseAuthClient:
    """Firebase Auth through the Admin SDK."""

    app: object = None
    web_api_key: Optional[str] = None
    timeout: float = 10.0

    def create_user(self, email: str, password: str, display_name: str | None = None) -> str:
        try:
            record = auth.create_user(
                email=email, password=password, display_name=display_name, app=self.app
            )
        except auth.EmailAlreadyExistsError as e:
            raise DuplicateError("Email already registered", field="email") from e
        except ValueError as e:
            # Raised by the SDK for malformed email/password before any call.
            raise ValidationError(str(e)) from e
        except FirebaseError as e:
            logger.error("Firebase create_user failed: %s", e)
            raise UpstreamError("Failed to register user", detail=str(e)) from e
        return record.uid

    def get_uid_by_email(self, email: str) -> str:
        try:
            return auth.get_user_by_email(email, app=self.app).uid
        except auth.UserNotFoundError as e:
            raise NotFoundError("User not found") from e
        except ValueError as e:
            raise ValidationError(str(e), field="email") from e
        except FirebaseError as e:
            logger.error("Firebase get_user_by_email failed: %s", e)
            raise UpstreamError("Failed to log in user", detail=str(e)) from e

    def create_custom_token(self, uid: str) -> str:
        try:
            token = auth.create_custom_token(uid, app=self.app)
        except (ValueError, auth.TokenSignError) as e:
            logger.error("Firebase create_custom_token failed: %s", e)
            raise UpstreamError("Failed to log in user", detail=str(e)) from e
        return token.decode("utf-8") if isinstance(token, bytes) else token

    def verify_id_token(self, token: str) -> str:
        try:
            decoded = auth.verify_id_token(token, app=self.app)
        except (auth.InvalidIdTokenError, ValueError) as e:
            raise UnauthorizedError("Unauthorized") from e
        except auth.CertificateFetchError as e:
            logger.error("Could not fetch token certificates: %s", e)
            raise UpstreamError(detail=str(e)) from e
        return decoded["uid"]

    def verify_password(self, email: str, password: str) -> None:
        if not self.web_api_key:
            raise UpstreamError(detail="firebase_web_api_key is not configured")
        try:
            response = requests.post(
                PASSWORD_SIGN_IN_URL,
                params={"key": self.web_api_key},
                json={"email": email, "password": password, "returnSecureToken": False},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Password verification request failed: %s", e)
            raise UpstreamError(detail=str(e)) from e
        if response.status_code == 400:
            raise UnauthorizedError("Invalid email or password")
        if not response.ok:
            logger.error(
                "Password verification returned %s: %s",
                response.status_code,
                response.text,
            )
            raise UpstreamError(detail=f"HTTP {response.status_code}")
