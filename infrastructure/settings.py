"""Application settings loaded from the environment"""
from functools import lru_cache

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.value_objects import LoyaltyConfiguration, PricingConfiguration


class SecuritySettings(BaseModel):
    """JWT settings for the back-office facade"""
    secret_key: str = "change-me-kiosk-secret-key"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30


class Settings(BaseSettings):
    """Kiosk settings; e.g. KIOSK_PRICING__TAX_RATE=0.15 overrides the tax rate"""

    app_name: str = "Hotel Kiosk Reservation Engine"
    log_level: str = "INFO"

    pricing: PricingConfiguration = PricingConfiguration()
    loyalty: LoyaltyConfiguration = LoyaltyConfiguration()
    security: SecuritySettings = SecuritySettings()

    # Demo inventory loaded by the composition root
    seed_rooms: bool = True

    model_config = SettingsConfigDict(
        env_prefix="KIOSK_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
