"""
Firebase Admin SDK bootstrap.

The Admin SDK keeps a process-global default app; every Firebase-backed client
in this package goes through ``get_firebase_app`` so it is initialized once.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from artist_backend.config import Settings

logger = logging.getLogger(__name__)


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    if settings.storage_bucket:
        options["storageBucket"] = settings.storage_bucket

    # Without an explicit key file the SDK falls back to application default
    # credentials (GOOGLE_APPLICATION_CREDENTIALS, metadata server, ...).
    cred = (
        credentials.Certificate(settings.firebase_credentials)
        if settings.firebase_credentials
        else None
    )
    logger.info(
        "Initializing Firebase app (project=%s)", settings.firebase_project_id
    )
    return firebase_admin.initialize_app(cred, options or None)
