"""
Application configuration

All runtime settings come from environment variables (or a local .env file).
Jobs and services take a Settings instance as a parameter; only entry points
(cron runner, admin CLI, FastAPI dependencies) read the module-level
`settings` object.

SECURITY: Defaults are fail-safe for production.
- DEBUG defaults to False
- Store credentials have no defaults (validated for the selected backend)
"""
import os
import logging
from typing import Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

STORE_BACKENDS = ("directus", "sql")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # App - defaults are PRODUCTION safe
    APP_NAME: str = "Codex API"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Item/file/folder store backend: "directus" (REST) or "sql" (SQLAlchemy + S3)
    STORE_BACKEND: str = "directus"

    # Directus
    DIRECTUS_URL: str = "http://localhost:8055"
    DIRECTUS_TOKEN: str = ""
    DIRECTUS_STORAGE: str = "local"
    DIRECTUS_TIMEOUT_SECONDS: float = 30.0

    # Database (SQL backend only)
    DATABASE_URL: str = ""
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 3600  # 1 hour

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v):
        """Convert plain postgres:// URLs to the asyncpg driver form."""
        if not v:
            return v
        if v.startswith("postgres://"):
            v = v.replace("postgres://", "postgresql+asyncpg://", 1)
        elif v.startswith("postgresql://") and "+asyncpg" not in v:
            v = v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Storage (S3 compatible, SQL backend only)
    S3_BUCKET: str = "codex-assets"
    S3_REGION: str = "us-east-1"
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_ENDPOINT: str = ""  # Leave empty for AWS, set for R2/MinIO

    # Codex collection
    CODEX_COLLECTION: str = "codex"
    CODEX_UNIVERSE_SIZE: int = 10000
    CODEX_ID_PAD_WIDTH: int = 5
    CODEX_SOURCE_PREFIX: str = "Art_DeCC0_"

    # IPFS source documents and character images
    IPFS_GATEWAY: str = "http://127.0.0.1:8080"
    IPFS_CODEX_HASH: str = "QmNdMnuJURo3sFkLR2WLSshPqycfjafbHoAcd2FTdBJ8S5"

    # Seed pipeline
    SEED_DIR: str = "./seed"
    SEED_BATCH_SIZE: int = 50
    SEED_ON_STARTUP: bool = False
    SEED_REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Asset migration
    ASSET_FOLDER_ID: str = ""
    ASSET_FOLDER_NAME: str = "codex"
    ASSET_FETCH_TIMEOUT_SECONDS: float = 10.0
    ASSET_FETCH_MAX_RETRIES: int = 3
    ASSET_REPAIR_LIMIT: int = 1000

    # Owner sync (The Graph)
    THE_GRAPH_API_KEY: str = ""
    THE_GRAPH_SUBGRAPH_ID: str = "G39v7PFNz911KNWga8erpgei622XKQLW7P6JBmm6fC97"
    THE_GRAPH_GATEWAY: str = "https://gateway.thegraph.com/api"
    OWNER_SYNC_PAGE_SIZE: int = 1000
    OWNER_SYNC_PAGE_DELAY_SECONDS: float = 0.1
    OWNER_SYNC_ERROR_DELAY_SECONDS: float = 1.0

    # Price sync (MOCA adoption feed)
    MOCA_API_BASE_URL: str = ""
    PRICE_MAX_FRACTION_DIGITS: int = 5

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    OWNER_SYNC_INTERVAL_MINUTES: int = 60
    PRICE_SYNC_INTERVAL_MINUTES: int = 1

    @field_validator("STORE_BACKEND", mode="before")
    @classmethod
    def normalize_store_backend(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
        if v not in STORE_BACKENDS:
            raise ValueError(f"STORE_BACKEND must be one of {STORE_BACKENDS}, got {v!r}")
        return v

    @field_validator("IPFS_GATEWAY", "DIRECTUS_URL", "MOCA_API_BASE_URL", "THE_GRAPH_GATEWAY")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if v else v

    @property
    def asset_folder_id(self) -> Optional[str]:
        return self.ASSET_FOLDER_ID or None

    @model_validator(mode="after")
    def validate_production_config(self):
        """Runtime validation to catch unusable production configurations."""
        if self.ENVIRONMENT == "production":
            errors = []

            if self.DEBUG:
                errors.append(
                    "DEBUG=True is forbidden in production. "
                    "Set DEBUG=false or ENVIRONMENT=development"
                )

            if self.STORE_BACKEND == "directus" and not self.DIRECTUS_TOKEN:
                errors.append("DIRECTUS_TOKEN is required when STORE_BACKEND=directus")

            if self.STORE_BACKEND == "sql" and not self.DATABASE_URL:
                errors.append("DATABASE_URL is required when STORE_BACKEND=sql")

            if errors:
                raise ValueError(
                    "PRODUCTION CONFIGURATION ERRORS:\n" + "\n".join(f"  - {e}" for e in errors)
                )

        return self


# Try to load settings, provide helpful error on failure
try:
    settings = Settings()
except Exception:
    # In development, allow fallback defaults
    if os.getenv("ENVIRONMENT", "development") == "development":
        logger.warning(
            "Settings validation failed, using development defaults. "
            "Set DIRECTUS_TOKEN or DATABASE_URL in .env file."
        )
        os.environ.setdefault("ENVIRONMENT", "development")
        settings = Settings(ENVIRONMENT="development")
    else:
        raise
