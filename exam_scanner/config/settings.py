"""
==============================================================================
Application Settings Module
==============================================================================

Station configuration for the exam scanner, loaded with Pydantic Settings.

Every value can be set through an environment variable of the same name
(upper case) or a .env file in the working directory; .env.example lists
them all with their defaults.

Groups:
------
- Station: who this device is and where it stands
- Local store: SQLite file and connection pragmas
- Auth: JWT signing and token lifetimes
- Scanning: session timeout and camera pacing
- Sync: offline switch, retry limit, simulated remote and auto-sync

Demo data:
---------
SEED_DEMO_DATA creates the admin/admin and examiner/test accounts plus a
few exams and barcodes. Turn it off on real stations.

==============================================================================
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)

KNOWN_ENVIRONMENTS = ("development", "staging", "production")


class Settings(BaseSettings):
    """Settings for one scanning station."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # =========================================================================
    # STATION
    # =========================================================================
    app_name: str = Field(default="Exam Barcode Scanner")

    app_env: str = Field(
        default="development",
        description="One of development, staging, production"
    )

    debug: bool = Field(default=False, description="SQL echo and verbose logs")

    host: str = Field(default="0.0.0.0")

    port: int = Field(default=8000, ge=1, le=65535)

    station_id: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Recorded as device_id on scans that do not name a device"
    )

    station_location: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Recorded as location on scans that do not name one"
    )

    # =========================================================================
    # LOCAL STORE
    # =========================================================================
    database_url: str = Field(
        default="sqlite:///./storage/db/exam_scanner.db",
        description="SQLAlchemy URL of the on-device record store"
    )

    sqlite_wal: bool = Field(
        default=True,
        description="Use write-ahead logging so the sync task does not block scans"
    )

    sqlite_busy_timeout_ms: int = Field(
        default=5000,
        ge=0,
        le=60000,
        description="How long a writer waits for a locked SQLite file"
    )

    # =========================================================================
    # AUTH
    # =========================================================================
    jwt_secret_key: str = Field(
        default="change-this-in-production",
        min_length=16
    )

    jwt_algorithm: str = Field(default="HS256")

    access_token_expire_minutes: int = Field(default=60, ge=1, le=1440)

    refresh_token_expire_days: int = Field(default=7, ge=1, le=90)

    seed_demo_data: bool = Field(
        default=True,
        description="Seed demo accounts, exams and barcodes into an empty store"
    )

    default_admin_username: str = Field(default="admin", min_length=3, max_length=50)

    default_admin_password: str = Field(default="admin", min_length=1)

    # =========================================================================
    # EXAMS & SCANNING
    # =========================================================================
    exam_validity_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Days until an exam created by the barcode generator expires"
    )

    scan_timeout_seconds: float = Field(default=30.0, gt=0, le=600)

    scan_interval_ms: int = Field(
        default=100,
        ge=0,
        le=5000,
        description="Pause between camera frame reads"
    )

    scan_history_limit: int = Field(
        default=50,
        ge=1,
        le=500,
        description="Scan logs returned by history when no limit is given"
    )

    # =========================================================================
    # SYNC
    # =========================================================================
    offline_mode: bool = Field(
        default=False,
        description="Treat the remote service as unreachable"
    )

    max_sync_attempts: int = Field(default=5, ge=1, le=100)

    sync_success_rate: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Probability that the simulated remote accepts an item"
    )

    sync_latency_ms: int = Field(default=0, ge=0, le=10000)

    auto_sync_enabled: bool = Field(default=True)

    sync_interval_minutes: int = Field(default=60, ge=1, le=1440)

    cors_origins: str = Field(
        default='["*"]',
        description="JSON array of allowed origins for the station UI"
    )

    # =========================================================================
    # VALIDATORS
    # =========================================================================
    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, value: str) -> str:
        normalized = value.lower().strip()

        if normalized not in KNOWN_ENVIRONMENTS:
            logger.warning(f"Unknown environment '{value}', using 'development'")
            return "development"

        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, value: str) -> str:
        """Tokens are signed with the shared secret, so only HMAC is allowed."""
        value = value.upper()
        if value not in ("HS256", "HS384", "HS512"):
            raise ValueError(f"Unsupported JWT algorithm: {value}")
        return value

    @field_validator("station_id", "station_location")
    @classmethod
    def blank_as_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    # =========================================================================
    # DERIVED VALUES
    # =========================================================================
    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        try:
            origins = json.loads(self.cors_origins)
        except json.JSONDecodeError:
            logger.warning(f"Invalid CORS_ORIGINS {self.cors_origins!r}, allowing all")
            return ["*"]
        return origins if isinstance(origins, list) else ["*"]

    @property
    def access_token_expire_seconds(self) -> int:
        return self.access_token_expire_minutes * 60

    @property
    def scan_interval_seconds(self) -> float:
        return self.scan_interval_ms / 1000

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_database_path(self) -> Optional[Path]:
        """
        File backing the local store.

        Returns:
            Path of the SQLite file, or None for in-memory and server databases
        """
        if not self.is_sqlite:
            return None

        db_path = self.database_url.replace("sqlite:///", "", 1)
        if not db_path or db_path.startswith("sqlite:") or db_path == ":memory:":
            return None
        return Path(db_path)

    def ensure_directories(self) -> None:
        db_path = self.get_database_path()
        if db_path:
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Store directory ready: {db_path.parent}")

    def __repr__(self) -> str:
        return (
            f"Settings(app_env={self.app_env!r}, station_id={self.station_id!r}, "
            f"offline_mode={self.offline_mode}, auto_sync={self.auto_sync_enabled})"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings; the store directory is created on first load."""
    settings = Settings()
    settings.ensure_directories()

    if settings.debug:
        logger.info(f"Configuration loaded: {settings}")

    return settings
