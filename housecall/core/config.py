# housecall/core/config.py

from zoneinfo import ZoneInfo

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Practice backend ---
    API_BASE_URL: str = "http://localhost:3000"
    PRACTICE_ID: int = 1
    PRACTICE_TIMEZONE: str = "America/New_York"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # --- Lookup debouncing (seconds of quiet input before a remote call) ---
    ZONE_CHECK_DEBOUNCE_SECONDS: float = 0.5
    SLOT_SEARCH_DEBOUNCE_SECONDS: float = 0.5

    # --- Visit duration estimate ---
    BASE_SERVICE_MINUTES: int = 40
    ADDITIONAL_ANIMAL_MINUTES: int = 20

    # --- Intake sessions ---
    SESSION_TTL_MINUTES: int = 15

    # --- Security ---
    INTAKE_API_KEY: str | None = None

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_REQUESTS: bool = False
    LOG_RESPONSES: bool = False
    MAX_LOG_LENGTH: int = 200

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.PRACTICE_TIMEZONE)

    # Monitoring helpers
    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV.lower() in ("production", "prod")

# Singleton
settings = Settings()
