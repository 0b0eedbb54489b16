# clinic_booking/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
import urllib.parse

class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Postgres ---
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "clinic"
    POSTGRES_USER: str = "clinic"
    POSTGRES_PASSWORD: str = ""

    # Full SQLAlchemy URL; wins over the POSTGRES_* parts (e.g. sqlite+aiosqlite:///./data/clinic.db)
    DATABASE_URL: str | None = None

    # --- Clinic rules ---
    CLINIC_TIMEZONE: str = "Asia/Manila"
    SLOT_MINUTES: int = 30
    BOOKING_WINDOW_DAYS: int = 7
    CAPACITY_EDIT_WINDOW_DAYS: int = 14
    CAPACITY_EDITS_MANUAL_ROWS: bool = False
    REFERENCE_CODE_ATTEMPTS: int = 5

    # --- Security ---
    CLINIC_API_KEY: str | None = None

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_REQUESTS: bool = False
    LOG_RESPONSES: bool = False
    MAX_LOG_LENGTH: int = 200
    SLOW_REQUEST_THRESHOLD: float = 2.0

    ALLOWED_CORS_ORIGINS: str = "*"  # comma-separated list, e.g. "http://localhost:5173,https://clinic.example"

    # Sync URI (Alembic)
    @property
    def sync_db_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL.replace("+aiosqlite", "").replace("+asyncpg", "")
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    # Async URI (SQLAlchemy engine)
    @property
    def async_db_uri(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_CORS_ORIGINS.split(",") if o.strip()]

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("production", "prod")

# Singleton
settings = Settings()
