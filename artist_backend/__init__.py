"""
Backend package for the artist management API.

This package provides a FastAPI application over Firestore, Firebase Auth and
Cloud Storage, with in-memory stand-ins for each provider so the service can
run locally and under test without Google credentials.
"""
