"""
Firebase initialization.
Single-source-of-truth Firestore client and Storage bucket for the issue service.
"""

import json
import logging
import os
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app, storage

from app.core.settings import settings

logger = logging.getLogger(__name__)

db: Optional[firestore.Client] = None


def _initialize_app() -> None:
    """Initialize the default Firebase app once (service account or ADC)."""
    if firebase_admin._apps:
        return

    options = {}
    if settings.FIREBASE_STORAGE_BUCKET:
        options["storageBucket"] = settings.FIREBASE_STORAGE_BUCKET
    if settings.FIREBASE_PROJECT_ID:
        options["projectId"] = settings.FIREBASE_PROJECT_ID

    cred_path = settings.FIREBASE_CREDENTIALS_PATH
    if not cred_path:
        logger.info("[FIRESTORE] No credentials path set, using Application Default Credentials")
        initialize_app(options=options or None)
        return

    if not os.path.exists(cred_path):
        raise FileNotFoundError(
            f"Firebase credentials file not found: {cred_path}\n"
            f"Please check your .env file and ensure FIREBASE_CREDENTIALS_PATH is correct."
        )

    try:
        with open(cred_path, "r") as f:
            cred_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Firebase credentials file is not valid JSON: {e}")

    required_fields = ["type", "project_id", "private_key", "client_email"]
    missing_fields = [field for field in required_fields if field not in cred_data]
    if missing_fields:
        raise ValueError(
            f"Firebase credentials file is missing required fields: {missing_fields}\n"
            f"Please download a fresh service account key from Firebase Console."
        )

    initialize_app(credentials.Certificate(cred_path), options=options or None)
    logger.info(f"[FIRESTORE] Firebase Admin SDK initialized for project {cred_data.get('project_id')}")


def initialize_firestore() -> firestore.Client:
    global db

    if db is not None:
        return db

    if settings.USE_MOCK_DB:
        from app.config.mock_firestore import get_mock_db
        db = get_mock_db(settings.MOCK_DB_PATH)
        logger.info("[FIRESTORE] USING MOCK DATABASE")
        return db

    try:
        _initialize_app()
        db = firestore.client()
    except FileNotFoundError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - Credentials file not found.\n{e}"
        ) from e
    except ValueError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - Invalid credentials file.\n{e}"
        ) from e

    logger.info(f"[FIRESTORE] USING REAL FIRESTORE DATABASE (project: {settings.FIREBASE_PROJECT_ID or 'default'})")
    return db


def get_db() -> firestore.Client:
    """
    Get the initialized Firestore client.

    Raises RuntimeError if Firestore has not been initialized and cannot be.
    """
    if db is None:
        try:
            initialize_firestore()
        except Exception as e:
            raise RuntimeError(
                f"Firestore not initialized and initialization failed: {e}. "
                "Please check your Firebase credentials and configuration."
            ) from e
    return db


def get_storage_bucket():
    """
    Get the Cloud Storage bucket for issue photos, or None when not configured.

    The mock database mode never talks to Cloud Storage.
    """
    if settings.USE_MOCK_DB or not settings.FIREBASE_STORAGE_BUCKET:
        return None
    _initialize_app()
    return storage.bucket(settings.FIREBASE_STORAGE_BUCKET)
