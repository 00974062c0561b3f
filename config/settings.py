"""Global configuration settings."""
from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Bounce Detection
    MIN_BOUNCE_PERCENT: float = Field(default=5.0, gt=0)
    TIME_WINDOW_MS: int = Field(default=300_000, gt=0)  # 5 minutes
    VOLUME_THRESHOLD: float = Field(default=1.5, gt=0)
    RECENT_WINDOW_SIZE: int = Field(default=10, ge=1)  # Observations used for low / avg volume
    MIN_OBSERVATIONS: int = Field(default=3, ge=1)
    SIGNAL_MAX_AGE_MS: int = Field(default=3_600_000, gt=0)  # 1 hour

    # Signal Classifier
    CONFIDENCE_THRESHOLD: float = Field(default=0.70, gt=0, le=1)
    LEARNING_RATE: float = Field(default=0.01, gt=0)
    WEIGHT_INIT_SCALE: float = Field(default=0.05, gt=0)  # Lazy weights drawn from U(-scale, scale)

    # Paper Trading / Backtesting
    INITIAL_BALANCE: float = Field(default=10_000.0, gt=0)
    COMMISSION_RATE: float = Field(default=0.001, ge=0, lt=1)  # 0.1% of notional
    SLIPPAGE_RATE: float = Field(default=0.002, ge=0, lt=1)  # 0.2% of notional
    POSITION_SIZE_PCT: float = Field(default=0.10, gt=0, le=1)  # Backtest sizing when quantity is omitted
    BACKTEST_YIELD_EVERY: int = Field(default=500, ge=1)  # Data points between event loop yields

    # Pipeline
    DEFAULT_SYMBOL: str = "MEME"
    DEFAULT_TRADE_QUANTITY: float = Field(default=10, gt=0)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "./logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Global settings instance
settings = Settings()
