import os
from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, validator
from typing import List, Optional, Set, Union


class Settings(BaseSettings):
    """
    Application settings with Pydantic validation.
    Loads from environment variables with type checking and validation.
    """
    app_name: str = Field(default="ERP Files API", env="APP_NAME")
    environment: str = Field(default="development", env="ENVIRONMENT")
    debug: bool = Field(default=True, env="DEBUG")

    backend_cors_origins: str = Field(
        default="http://localhost:3000,http://127.0.0.1:3000",
        env="BACKEND_CORS_ORIGINS"
    )

    database_url: str = Field(
        default="sqlite:///./erp_files.db",
        env="DATABASE_URL"
    )

    # Resource routes are mounted below this prefix (e.g. /api/clients)
    api_prefix: str = Field(default="/api", env="API_PREFIX")

    # Bearer tokens are issued elsewhere; we only verify and read id/role claims
    jwt_secret_key: str = Field(default="dev-secret-key-change-in-production-7c1e9a5b3d2f4e6a8b0c", env="JWT_SECRET_KEY", min_length=32)
    jwt_algorithm: str = Field(default="HS256", env="JWT_ALGORITHM")

    # Roles that see and act on every client and file
    privileged_roles: str = Field(default="gmd,chairman", env="PRIVILEGED_ROLES")

    # Uploaded binaries
    upload_dir: str = Field(default="./uploads", env="UPLOAD_DIR")
    upload_max_bytes: int = Field(default=25 * 1024 * 1024, env="UPLOAD_MAX_BYTES")

    # Sentry
    sentry_dsn: Union[str, None] = Field(default=None, env="SENTRY_DSN")
    sentry_env: str = Field(default="development", env="SENTRY_ENV")

    # Prometheus scrape token (required in production)
    metrics_token: Optional[str] = Field(default=None, env="METRICS_TOKEN")

    @validator("jwt_secret_key")
    def validate_jwt_secret(cls, v: str, values: dict) -> str:
        """Ensure JWT secret is strong in production"""
        env = values.get("environment")
        if env == "production":
            if len(v) < 32 or "dev-secret" in v or "change" in v.lower():
                raise ValueError(
                    "JWT_SECRET_KEY must be a strong, unique secret (min 32 chars) in production."
                )
        return v

    @validator("database_url")
    def validate_database_url(cls, v: str, values: dict) -> str:
        """Validate database URL; disallow SQLite in production."""
        env = values.get("environment")
        if env == "production" and v.startswith("sqlite"):
            raise ValueError("SQLite is not allowed for DATABASE_URL in production. Use PostgreSQL or MySQL.")
        return v

    @validator("debug")
    def validate_debug(cls, v: bool, values: dict) -> bool:
        """Never allow DEBUG=true in production."""
        if values.get("environment") == "production" and v:
            raise ValueError("DEBUG must be false in production.")
        return v

    @validator("privileged_roles")
    def validate_privileged_roles(cls, v: str) -> str:
        roles = [r.strip() for r in (v or "").split(",") if r.strip()]
        if not roles:
            raise ValueError("PRIVILEGED_ROLES must name at least one role.")
        return ",".join(roles)

    @validator("upload_max_bytes")
    def validate_upload_max_bytes(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("UPLOAD_MAX_BYTES must be positive.")
        return v

    @property
    def privileged_role_set(self) -> Set[str]:
        return {r.strip().lower() for r in self.privileged_roles.split(",") if r.strip()}

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.backend_cors_origins.split(",") if o.strip()]

    class Config:
        # Load env file based on ENVIRONMENT; default to development
        env_file = ".env.production" if os.getenv("ENVIRONMENT") == "production" else ".env.development"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Validates all environment variables on first access.
    Raises ValidationError if configuration is invalid.
    """
    return Settings()
