from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from uma_engine.chains import NATIVE_SETTLEMENT_LAYER
from uma_engine.urls import is_domain_local


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Public base URL of the default tenant, used in lnurlp callbacks.
    base_url: Optional[str] = None

    # "production" switches callbacks for non-local domains to https.
    environment: str = "development"

    # Seed for the invoice issuing service. Only needed for Lightning settlement.
    spark_seed: Optional[str] = None

    database_url: str = "sqlite:///./uma_engine.db"

    default_currency: str = "USD"
    native_settlement_layer: str = NATIVE_SETTLEMENT_LAYER

    # When false, pay requests without a nonce get one generated for them.
    require_nonce: bool = False

    # Nonce reservations older than this are purged. None keeps them forever.
    nonce_retention_days: Optional[int] = 30

    market_rates_url: Optional[str] = None
    comment_chars_allowed: int = 255

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def sqlalchemy_database_url(self) -> str:
        # Hosted postgres providers still hand out the deprecated scheme.
        if self.database_url.startswith("postgres://"):
            return self.database_url.replace("postgres://", "postgresql://", 1)
        return self.database_url

    def base_url_for_domain(self, domain: str, is_default: bool = False) -> str:
        if is_default and self.base_url:
            return self.base_url.rstrip("/")
        scheme = "https" if self.is_production and not is_domain_local(domain) else "http"
        return f"{scheme}://{domain}"
