from decimal import Decimal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    ENV: str = Field(default="development", validation_alias="APP_ENV")
    APP_NAME: str = "fleetpay-api"
    LOG_LEVEL: str = "INFO"

    # Two-tier commission schedule
    PAYOUT_TARGET_AMOUNT: Decimal = Decimal("2250")
    PAYOUT_BASE_RATE: Decimal = Decimal("0.30")
    PAYOUT_INCENTIVE_RATE: Decimal = Decimal("0.70")

    # Trips are bucketed into payout days in this timezone
    PAYOUT_TIMEZONE: str = "Asia/Kolkata"

    CURRENCY_SYMBOL: str = "₹"

    SESSION_SECRET_KEY: str = "change-this-session-secret"
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("PAYOUT_TARGET_AMOUNT", "PAYOUT_BASE_RATE", "PAYOUT_INCENTIVE_RATE")
    @classmethod
    def _schedule_precision(cls, v: Decimal) -> Decimal:
        # Payout columns keep 8 places: 4 from trip amounts, 4 from the schedule
        if not v.is_finite() or v < 0 or v.as_tuple().exponent < -4:
            raise ValueError(f"expected a non-negative amount with at most 4 decimal places, got {v}")
        return v

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return (self.ENV or "").strip().lower() in {"production", "prod"}


settings = CoreSettings()
