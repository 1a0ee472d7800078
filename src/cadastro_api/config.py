import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{name}'. "
            "Set it in the container .env before starting the service."
        )
    return value


def _split_origins(value: Optional[str]) -> List[str]:
    if not value:
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()] or ["*"]


class Settings(BaseModel):
    """Process-wide configuration. Built once at startup and never mutated."""

    model_config = ConfigDict(frozen=True)

    jwt_secret: str
    jwt_algorithm: str = "HS256"

    postgres_url: Optional[str] = None
    postgres_user: Optional[str] = None
    postgres_password: Optional[str] = None
    postgres_db: Optional[str] = None
    postgres_port: Optional[str] = None
    postgres_host: str = "localhost"
    db_pool_min: int = 1
    db_pool_max: int = 10

    cors_allow_origins: List[str] = ["*"]
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def dsn(self) -> str:
        """
        Resolve the PostgreSQL DSN.

        POSTGRES_URL wins when provided; otherwise the DSN is assembled from
        the individual POSTGRES_* variables, all of which are then required.
        """
        if self.postgres_url:
            return self.postgres_url

        missing = [
            env
            for env, value in [
                ("POSTGRES_USER", self.postgres_user),
                ("POSTGRES_PASSWORD", self.postgres_password),
                ("POSTGRES_DB", self.postgres_db),
                ("POSTGRES_PORT", self.postgres_port),
            ]
            if not value
        ]
        if missing:
            raise RuntimeError(f"Missing required environment variable(s): {', '.join(missing)}")
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Build settings from the environment."""
    return Settings(
        # Required for security; do not default.
        jwt_secret=_required_env("JWT_SECRET"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        postgres_url=os.getenv("POSTGRES_URL") or None,
        postgres_user=os.getenv("POSTGRES_USER"),
        postgres_password=os.getenv("POSTGRES_PASSWORD"),
        postgres_db=os.getenv("POSTGRES_DB"),
        postgres_port=os.getenv("POSTGRES_PORT"),
        postgres_host=os.getenv("POSTGRES_HOST", "localhost"),
        db_pool_min=int(os.getenv("DB_POOL_MIN", "1")),
        db_pool_max=int(os.getenv("DB_POOL_MAX", "10")),
        cors_allow_origins=_split_origins(os.getenv("CORS_ALLOW_ORIGINS")),
        app_env=os.getenv("APP_ENV", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


# PUBLIC_INTERFACE
@lru_cache
def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    return load_settings()
