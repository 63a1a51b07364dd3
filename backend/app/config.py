"""
app/config.py - Application configuration and lazy Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment.
Firebase Admin (Firestore client) is only initialized when a Firestore-backed collaborator
is actually built, so the engines, the in-memory store and the test suite import cleanly
without service-account credentials.
"""
from functools import lru_cache
from typing import Optional

import firebase_admin
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = Field("QuickGrocer", description="Shown in the API title and SMS texts")

    # "firestore" in production, "memory" for local runs and tests
    storage_backend: str = Field("firestore")

    firebase_cred_file: str = Field("firebase_service_account.json")
    firebase_project_id: Optional[str] = None

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_client_id: Optional[str] = None
    firebase_auth_uri: Optional[str] = None
    firebase_token_uri: Optional[str] = None
    firebase_auth_provider_x509_cert_url: Optional[str] = None
    firebase_client_x509_cert_url: Optional[str] = None
    firebase_collection_prefix: str = Field("", description="Prefix for every Firestore collection")

    # Commerce (amounts in paise)
    currency: str = "INR"
    delivery_fee: int = Field(2000, ge=0)
    default_eta_minutes: int = Field(10, ge=0)

    # Phone / OTP login
    otp_length: int = 6
    otp_ttl_seconds: int = 600
    otp_max_attempts: int = 5
    otp_secret: str = Field("change-me", description="HMAC key for stored OTP hashes")
    otp_cleanup_minutes: int = 15

    fast2sms_api_key: Optional[str] = None
    fast2sms_url: str = "https://www.fast2sms.com/dev/bulkV2"
    sms_timeout: int = 10

    # Request/response collaborators (seconds)
    collaborator_timeout: float = 5.0

    debug: bool = False
    allowed_origins: str = "*"  # Comma-separated list or '*' for all

    def collection(self, name: str) -> str:
        """Prefix-aware collection name."""
        prefix = (self.firebase_collection_prefix or "").strip()
        return f"{prefix}{name}" if prefix else name

    def has_env_credentials(self) -> bool:
        return all([
            self.firebase_private_key_id,
            self.firebase_private_key,
            self.firebase_client_email,
            self.firebase_client_id,
            self.firebase_auth_uri,
            self.firebase_token_uri,
            self.firebase_auth_provider_x509_cert_url,
            self.firebase_client_x509_cert_url,
        ])


# Load settings from environment (.env file, etc.)
settings = Settings()


def get_firebase_app(cfg: Settings = settings) -> firebase_admin.App:
    """Initialize (once) and return the default Firebase Admin app."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if cfg.has_env_credentials():
        # Use environment variables for Firebase credentials (Cloud Run)
        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": cfg.firebase_project_id,
            "private_key_id": cfg.firebase_private_key_id,
            "private_key": (cfg.firebase_private_key or "").replace("\\n", "\n"),
            "client_email": cfg.firebase_client_email,
            "client_id": cfg.firebase_client_id,
            "auth_uri": cfg.firebase_auth_uri,
            "token_uri": cfg.firebase_token_uri,
            "auth_provider_x509_cert_url": cfg.firebase_auth_provider_x509_cert_url,
            "client_x509_cert_url": cfg.firebase_client_x509_cert_url,
        })
    else:
        # Use service account file (local development)
        cred = credentials.Certificate(cfg.firebase_cred_file)

    options = {"projectId": cfg.firebase_project_id} if cfg.firebase_project_id else None
    try:
        return firebase_admin.initialize_app(cred, options)
    except ValueError as e:
        if "already exists" in str(e):
            return firebase_admin.get_app()
        raise


@lru_cache(maxsize=1)
def get_db():
    """Firestore database client (created on first use)."""
    return firestore.client(app=get_firebase_app())
