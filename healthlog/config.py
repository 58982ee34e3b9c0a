from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/healthlog"
    default_tz: str = "UTC"
    api_key: str | None = None
    create_schema: bool = True  # Run CREATE TABLE IF NOT EXISTS on startup

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Activity defaults
    default_step_target: int = 1000  # Used when no fixed-monthly target carries forward

    # Medication stock projection
    refill_buffer_days: int = 3  # Refill date lands this many days before stock runs out
    low_stock_days: int = 7  # refill_status "soon" window

    # External advice generator (Gemini-compatible generateContent API)
    advice_api_key: str | None = None
    advice_endpoint: str = "https://generativelanguage.googleapis.com/v1beta"
    advice_model: str = "gemini-pro"
    advice_timeout_seconds: float = 30.0

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
