"""
Configuration management for Cartera.
Uses pydantic-settings for type-safe, centralized configuration.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type safety.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'  # Allow extra fields in .env for flexibility
    )

    # Database
    database_url: str = "sqlite:///cartera.db"
    db_echo: bool = False

    # Equity quotes (Yahoo chart endpoint)
    yahoo_chart_url: str = "https://query2.finance.yahoo.com/v8/finance/chart/{ticker}"
    yahoo_timeout: float = 15.0  # Per connect/read wait, not a total deadline
    yahoo_timeout: float = 15.0
    yahoo_max_retries: int = 2
    yahoo_backoff_base: float = 3.0  # Rate-limited retry n waits n * base
    yahoo_error_delay: float = 1.5

    # Crypto quotes (CoinGecko simple price)
    coingecko_url: str = "https://api.coingecko.com/api/v3/simple/price"
    coingecko_timeout: float = 15.0

    # Dollar rates (DolarAPI with Bluelytics fallback)
    dolarapi_url: str = "https://dolarapi.com/v1/dolares"
    bluelytics_url: str = "https://api.bluelytics.com.ar/v2/latest"
    fx_timeout: float = 15.0

    # Valuation
    dollar_rates_lookback: int = 10  # Recent rate rows scanned for latest per type

    # OpenAI / Cloud LLM Configuration
    openai_api_key: Optional[str] = None
    openai_model: Optional[str] = None
    openai_base_url: Optional[str] = None

    # Local LLM Configuration (Ollama)
    local_model: str = "qwen2.5:14b"
    local_llm_url: str = "http://localhost:11434/v1"

    @property
    def is_openai_configured(self) -> bool:
        """Check if OpenAI cloud mode is properly configured."""
        return all([
            self.openai_api_key,
            self.openai_model
        ])


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
