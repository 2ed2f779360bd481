"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import Depends

from artist_backend.artists import ArtistRepository
from artist_backend.auth import AuthClient, FirebaseAuthClient, InMemoryAuthClient
from artist_backend.change_feed import ChangeFeedRelay
from artist_backend.config import Settings, get_settings
from artist_backend.db import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from artist_backend.firebase import get_firebase_app
from artist_backend.ratings import AggregationEngine, RatingRecorder
from artist_backend.storage import (
    CosStorageClient,
    FirebaseStorageClient,
    InMemoryStorageClient,
    StorageClient,
)
from artist_backend.users import UserRepository

logger = logging.getLogger(__name__)

_document_store: DocumentStore | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None
_change_feed: ChangeFeedRelay | None = None


def _use_in_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not (
        settings.firebase_project_id or settings.firebase_credentials
    )


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so in-memory state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if _use_in_memory(settings):
        logger.warning("Using in-memory document store")
        _document_store = InMemoryDocumentStore()
    else:
        from firebase_admin import firestore

        app = get_firebase_app(settings)
        _document_store = FirestoreDocumentStore(firestore.client(app=app))
    return _document_store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.storage_bucket:
        logger.warning(
            "Using in-memory storage; image URLs will not resolve outside this process"
        )
        _storage_client = InMemoryStorageClient(host=settings.storage_public_host)
    elif settings.storage_backend == "cos":
        _storage_client = CosStorageClient(
            bucket=settings.storage_bucket,
            region=settings.cos_region or "",
            endpoint=settings.cos_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    else:
        _storage_client = FirebaseStorageClient(
            bucket_name=settings.storage_bucket,
            host=settings.storage_public_host,
            app=get_firebase_app(settings),
        )
    return _storage_client


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if _use_in_memory(settings):
        _auth_client = InMemoryAuthClient()
    else:
        _auth_client = FirebaseAuthClient(
            app=get_firebase_app(settings),
            web_api_key=settings.firebase_web_api_key,
        )
    return _auth_client


def get_change_feed() -> ChangeFeedRelay:
    """
    Return the process-wide relay; its upstream watch is shared by all clients.
    """
    global _change_feed
    if _change_feed:
        return _change_feed

    settings = get_settings()
    _change_feed = ChangeFeedRelay(
        get_document_store(), queue_size=settings.stream_queue_size
    )
    return _change_feed


def close_change_feed() -> None:
    if _change_feed:
        _change_feed.stop()


def reset_backends() -> None:
    """Drop every cached client (useful in tests)."""
    global _document_store, _storage_client, _auth_client, _change_feed
    close_change_feed()
    _document_store = None
    _storage_client = None
    _auth_client = None
    _change_feed = None


def get_artist_repository(
    db: DocumentStore = Depends(get_document_store),
    storage: StorageClient = Depends(get_storage_client),
) -> ArtistRepository:
    settings = get_settings()
    return ArtistRepository(db, storage, max_image_bytes=settings.max_image_bytes)


def get_user_repository(
    db: DocumentStore = Depends(get_document_store),
    auth_client: AuthClient = Depends(get_auth_client),
) -> UserRepository:
    settings = get_settings()
    return UserRepository(
        db, auth_client, verify_login_password=settings.verify_login_password
    )


def get_aggregation_engine(
    db: DocumentStore = Depends(get_document_store),
) -> AggregationEngine:
    return AggregationEngine(db)


def get_rating_recorder(
    db: DocumentStore = Depends(get_document_store),
) -> RatingRecorder:
    return RatingRecorder(db)
