"""
Core settings and environment variables for the CivicFix issue service.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Dict, List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.

    Mapping tables (priority -> confidence, keyword -> category) are read as
    JSON strings, e.g. VISION_PRIORITY_CONFIDENCE='{"high": 0.95}'.
    """

    # Application
    APP_NAME: str = "CivicFix Issue Service"
    APP_VERSION: str = "0.2.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API (comma separated)
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    FIREBASE_STORAGE_BUCKET: Optional[str] = None  # Issue photos; data URIs are stored when unset

    # Mock DB mode for local development without Firebase credentials.
    # An empty MOCK_DB_PATH keeps the mock purely in memory.
    USE_MOCK_DB: bool = False
    MOCK_DB_PATH: str = "./mock_db.json"

    # End-user bearer tokens (issued by the auth service)
    JWT_SECRET: Optional[str] = None  # Unset: every bearer token is refused
    JWT_ALGORITHM: str = "HS256"
    OFFICER_ROLES: List[str] = ["officer", "admin"]

    # Validation cascade
    AI_ENABLED: bool = True  # If False, only the local heuristic is registered
    HEURISTIC_FALLBACK_ENABLED: bool = True
    AI_TIMEOUT_SECONDS: float = 30.0

    # Tier 1: vision model
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_API_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Tier 2: internal classifier service
    AI_BACKEND_URL: str = "http://localhost:5000"
    INTERNAL_JWT_SECRET: Optional[str] = None
    INTERNAL_JWT_ISSUER: str = "civicfix-backend"
    INTERNAL_JWT_ROLE: str = "INTERNAL_SERVICE"
    INTERNAL_JWT_TTL_SECONDS: int = 300

    # Confidence tables
    VISION_PRIORITY_CONFIDENCE: Dict[str, float] = {"high": 0.9, "medium": 0.7, "low": 0.5}
    SECONDARY_PRIORITY_CONFIDENCE: Dict[str, float] = {"high": 0.9, "medium": 0.75, "low": 0.6}
    UNKNOWN_PRIORITY_CONFIDENCE: float = 0.7
    INVALID_LABEL_CONFIDENCE: float = 0.2
    LIVE_CONFIDENCE_THRESHOLD: float = 0.6  # strictly greater than

    # Classifier label -> category, first containing keyword wins
    CATEGORY_KEYWORDS: Dict[str, str] = {
        "road": "roads",
        "pothole": "roads",
        "garbage": "garbage",
        "waste": "garbage",
        "trash": "garbage",
        "water": "water",
        "drainage": "water",
        "leak": "water",
        "electricity": "electricity",
        "power": "electricity",
        "streetlight": "electricity",
    }

    # Public live feed
    LIVE_FEED_DEFAULT_RADIUS_METERS: float = 10000.0
    LIVE_FEED_LIMIT: int = 100

    # Uploads
    MAX_IMAGE_BYTES: int = 10 * 1024 * 1024
    ALLOWED_IMAGE_TYPES: List[str] = ["image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"]

    # Geocoding (address enrichment)
    # - GEOCODING_PROVIDER: "nominatim" (default, no API key), "google" or "none"
    # - GOOGLE_MAPS_API_KEY: only used when provider is "google"
    GEOCODING_PROVIDER: str = "nominatim"
    GOOGLE_MAPS_API_KEY: Optional[str] = None
    GEOCODING_TIMEOUT_SECONDS: float = 3.0

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes


# Global settings instance
settings = Settings()
