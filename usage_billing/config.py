# usage_billing/config.py

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DATABASE_URL: str = "sqlite:///db.sqlite"  # file in project root
    DB_ECHO: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "*"

    # Currencies billed through a mid-market (TTM) conversion
    FX_CURRENCIES: str = "$,USD"

    # Whole-transaction attempts when two uploads race for the same invoice number
    INVOICE_ALLOCATION_ATTEMPTS: int = 3

    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # Billing partner stamped on every customer record
    SI_PARTNER_NAME: str = "BIPROGY株式会社"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def fx_currencies(self) -> List[str]:
        return [code.strip() for code in self.FX_CURRENCIES.split(",") if code.strip()]


settings = Settings()
