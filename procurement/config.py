"""Application configuration."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    # App
    APP_NAME: str = "Material_Procurement"
    ENV: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"
    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:6002"

    # Backend selection (client side): "local" talks to the bundled REST API,
    # "cloud" talks to the managed Supabase project.
    API_MODE: str = "local"
    API_URL: str = "http://localhost:6002"
    HTTP_TIMEOUT_SECONDS: float = 15.0
    TOKEN_STORE_PATH: str = "~/.procurement/token.json"

    # Supabase (cloud mode)
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None

    # Database (local mode server)
    DATABASE_URL: str = "sqlite:///./data/app.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10
    AUTO_CREATE_SCHEMA: bool = True

    # JWT
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 7 * 24 * 60
    JWT_LEEWAY_SECONDS: int = 30  # clock skew tolerance for exp validation

    # Password policy / onboarding
    PASSWORD_MIN_LENGTH: int = 8
    PASSWORD_MAX_LENGTH: int = 256

    # Default admin created on an empty local store
    SEED_ADMIN_EMAIL: str = "admin@company.com"
    SEED_ADMIN_PASSWORD: str = "admin123"
    SEED_ADMIN_NAME: str = "System Admin"
    SEED_FILE: str = "data/seed.json"

    # Whether non-admin requesters may add a project from the request form.
    ALLOW_REQUESTER_PROJECT_CREATE: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    @property
    def is_local_mode(self) -> bool:
        return self.API_MODE.strip().lower() == "local"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
