import os
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

DEFAULT_API_PREFIX = "/api/v1"
DEFAULT_DATABASE_NAME = "commerceCart-db"
DEFAULT_TOKEN_LIFETIME_DAYS = 30
DEFAULT_UPLOAD_FOLDER = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "public", "uploads"
)


def _read_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw_value = environ.get(key)
    if raw_value is None or not str(raw_value).strip():
        return default
    try:
        return int(str(raw_value).strip())
    except (TypeError, ValueError):
        return default


def _split_origins(raw_value: Optional[str]) -> Tuple[str, ...]:
    origins = []
    for origin in (raw_value or "").split(","):
        trimmed = origin.strip()
        if trimmed:
            origins.append(trimmed)
    return tuple(origins)


def _normalize_prefix(value: Optional[str]) -> str:
    prefix = (value or "").strip() or DEFAULT_API_PREFIX
    if not prefix.startswith("/"):
        prefix = f"/{prefix}"
    return prefix.rstrip("/")


@dataclass(frozen=True)
class Settings:
    """Process configuration, built once at startup and passed to the app."""

    jwt_secret: Optional[str] = None
    connection_string: Optional[str] = None
    database_name: str = DEFAULT_DATABASE_NAME
    api_prefix: str = DEFAULT_API_PREFIX
    token_lifetime: timedelta = timedelta(days=DEFAULT_TOKEN_LIFETIME_DAYS)
    upload_folder: str = DEFAULT_UPLOAD_FOLDER
    max_upload_mb: int = 16
    cors_origins: Tuple[str, ...] = ()
    trusted_proxy_hops: int = 1
    default_admin_email: str = ""
    log_level: str = "INFO"
    environment: str = "development"
    port: int = 5000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        if environ is None:
            load_dotenv()
            environ = os.environ

        token_days = _read_int(environ, "JWT_EXPIRES_DAYS", DEFAULT_TOKEN_LIFETIME_DAYS)
        if token_days <= 0:
            token_days = DEFAULT_TOKEN_LIFETIME_DAYS

        return cls(
            jwt_secret=(environ.get("JWT_SECRET") or "").strip() or None,
            connection_string=(environ.get("CONNECTION_STRING") or "").strip() or None,
            database_name=(environ.get("DATABASE_NAME") or "").strip()
            or DEFAULT_DATABASE_NAME,
            api_prefix=_normalize_prefix(environ.get("API_URL")),
            token_lifetime=timedelta(days=token_days),
            upload_folder=(environ.get("UPLOAD_FOLDER") or "").strip()
            or DEFAULT_UPLOAD_FOLDER,
            max_upload_mb=max(1, _read_int(environ, "MAX_UPLOAD_SIZE_MB", 16)),
            cors_origins=_split_origins(environ.get("CORS_ALLOWED_ORIGINS")),
            trusted_proxy_hops=max(0, _read_int(environ, "TRUSTED_PROXY_HOPS", 1)),
            default_admin_email=(environ.get("DEFAULT_ADMIN_EMAIL") or "")
            .strip()
            .lower(),
            log_level=(environ.get("LOG_LEVEL") or "INFO").strip().upper(),
            environment=(
                environ.get("NODE_ENV") or environ.get("APP_ENV") or "development"
            )
            .strip()
            .lower(),
            port=_read_int(environ, "PORT", 5000),
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def override(self, **changes: Any) -> "Settings":
        return replace(self, **changes)

    def validate(self, *, require_database: bool = True) -> None:
        if not self.jwt_secret:
            raise ConfigurationError("JWT_SECRET must be set to sign access tokens.")
        if require_database and not self.connection_string:
            raise ConfigurationError(
                "CONNECTION_STRING must be set to reach the MongoDB database."
            )

    def to_flask_config(self) -> Dict[str, Any]:
        return {
            "JWT_SECRET_KEY": self.jwt_secret,
            "JWT_ALGORITHM": "HS256",
            "JWT_ACCESS_TOKEN_EXPIRES": self.token_lifetime,
            "JWT_IDENTITY_CLAIM": "id",
            "JWT_TOKEN_LOCATION": ["headers"],
            "JWT_HEADER_NAME": "Authorization",
            "JWT_HEADER_TYPE": "Bearer",
            "MAX_CONTENT_LENGTH": self.max_upload_mb * 1024 * 1024,
            "PRODUCT_UPLOAD_FOLDER": self.upload_folder,
            "PRODUCT_ALLOWED_TYPES": {
                "image/png": "png",
                "image/jpeg": "jpeg",
                "image/jpg": "jpg",
            },
        }
