from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from COUPON_RESTRICTIONS_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="COUPON_RESTRICTIONS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Coupon Restrictions Service"
    app_version: str = "1.3.0"
    log_level: str = "INFO"

    translation_domain: str = "coupon-restrictions"
    locale_dir: Optional[str] = None
    language: Optional[str] = None

    # What a customer restriction does when accounts/orders can't be read.
    lookup_failure_policy: Literal["open", "closed"] = "open"

    # accept shopper emails on special-use domains such as .test
    email_test_environment: bool = False


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
