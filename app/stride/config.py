import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    clerk_secret_key: str
    clerk_jwt_key: str
    clerk_jwks_url: str
    clerk_jwt_algorithms: str
    clerk_webhook_secret: str
    clerk_api_url: str
    app_url: str

    modash_api_key: str
    modash_base_url: str
    modash_request_delay_ms: int

    redis_url: str
    cache_ttl_seconds: int

    payment_encryption_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def normalize_database_url(url: str) -> str:
    # Managed Postgres providers still hand out postgres://, which SQLAlchemy 2 rejects.
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=normalize_database_url(_getenv("DATABASE_URL", "sqlite:///stride.db")),
        clerk_secret_key=_getenv("CLERK_SECRET_KEY", ""),
        clerk_jwt_key=_getenv("CLERK_JWT_KEY", ""),
        clerk_jwks_url=_getenv("CLERK_JWKS_URL", ""),
        clerk_jwt_algorithms=_getenv("CLERK_JWT_ALGORITHMS", "RS256"),
        clerk_webhook_secret=_getenv("CLERK_WEBHOOK_SECRET", ""),
        clerk_api_url=_getenv("CLERK_API_URL", "https://api.clerk.com"),
        app_url=_getenv("APP_URL", ""),
        modash_api_key=_getenv("MODASH_API_KEY", ""),
        modash_base_url=_getenv("MODASH_BASE_URL", "https://api.modash.io"),
        modash_request_delay_ms=_getenv_int("MODASH_REQUEST_DELAY_MS", 500),
        redis_url=_getenv("REDIS_URL", ""),
        cache_ttl_seconds=_getenv_int("CACHE_TTL_SECONDS", 300),
        payment_encryption_key=_getenv("PAYMENT_ENCRYPTION_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "CLERK_SECRET_KEY": s.clerk_secret_key,
        # PEM public key (or shared secret in tests); preferred over JWKS when set
        "CLERK_JWT_KEY": s.clerk_jwt_key.replace("\\n", "\n"),
        "CLERK_JWKS_URL": s.clerk_jwks_url,
        "CLERK_JWT_ALGORITHMS": [a.strip() for a in s.clerk_jwt_algorithms.split(",") if a.strip()],
        "CLERK_WEBHOOK_SECRET": s.clerk_webhook_secret,
        "CLERK_API_URL": s.clerk_api_url,
        # Public frontend origin; invitation links redirect here
        "APP_URL": s.app_url,
        "MODASH_API_KEY": s.modash_api_key,
        "MODASH_BASE_URL": s.modash_base_url,
        "MODASH_REQUEST_DELAY_MS": s.modash_request_delay_ms,
        "REDIS_URL": s.redis_url,
        "CACHE_TTL_SECONDS": s.cache_ttl_seconds,
        "PAYMENT_ENCRYPTION_KEY": s.payment_encryption_key,
        "JSON_SORT_KEYS": False,
        # request bodies are JSON only
        "MAX_CONTENT_LENGTH": 2 * 1024 * 1024,
    }
