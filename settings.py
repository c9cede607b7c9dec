"""Configuration management using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pipeline configuration loaded from STATEMENT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="STATEMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Categorization
    category_rules_path: str = ""

    # Analytics / forecasting
    default_granularity: str = "month"
    forecast_horizon_months: int = 12
    baseline_lookback_periods: int = 3

    # Advice enrichment
    openai_api_key: str = ""
    openai_model: str = "gpt-4.1-mini"

    # Service
    service_name: str = "statement-insights"
    log_level: str = "INFO"


settings = Settings()
