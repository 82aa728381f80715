from decimal import Decimal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Read env from container + optionally from files
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        extra="ignore",
        case_sensitive=False,
    )

    # App
    ENVIRONMENT: str = Field(default="dev", validation_alias=AliasChoices("ENVIRONMENT", "environment"))
    APP_NAME: str = Field(default="spa_ledger", validation_alias=AliasChoices("APP_NAME", "app_name"))
    LOG_LEVEL: str = Field(default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))
    PORT: int = Field(default=8000, validation_alias=AliasChoices("PORT", "port"))

    # Google Sheets (the only database)
    GOOGLE_SHEETS_ID: str = Field(default="", validation_alias=AliasChoices("GOOGLE_SHEETS_ID", "google_sheets_id"))
    GOOGLE_CLIENT_EMAIL: str = Field(default="", validation_alias=AliasChoices("GOOGLE_CLIENT_EMAIL", "google_client_email"))
    GOOGLE_PRIVATE_KEY: str = Field(default="", validation_alias=AliasChoices("GOOGLE_PRIVATE_KEY", "google_private_key"))
    SHEETS_API_BASE_URL: str = Field(
        default="https://sheets.googleapis.com/v4",
        validation_alias=AliasChoices("SHEETS_API_BASE_URL", "sheets_api_base_url"),
    )
    SHEETS_TOKEN_URL: str = Field(
        default="https://oauth2.googleapis.com/token",
        validation_alias=AliasChoices("SHEETS_TOKEN_URL", "sheets_token_url"),
    )
    SHEETS_TIMEOUT_SECONDS: float = Field(default=30.0, validation_alias=AliasChoices("SHEETS_TIMEOUT_SECONDS", "sheets_timeout_seconds"))
    # RAW keeps bill numbers like "2025-26/000001" from being parsed as dates
    SHEETS_VALUE_INPUT_OPTION: str = Field(
        default="RAW",
        validation_alias=AliasChoices("SHEETS_VALUE_INPUT_OPTION", "sheets_value_input_option"),
    )

    # Billing
    DEFAULT_GST_RATE: Decimal = Field(default=Decimal("0.18"), validation_alias=AliasChoices("DEFAULT_GST_RATE", "default_gst_rate"))
    BILL_LIST_CACHE_SECONDS: float = Field(default=20.0, validation_alias=AliasChoices("BILL_LIST_CACHE_SECONDS", "bill_list_cache_seconds"))
    LEDGER_VERIFY_INDEX: bool = Field(default=True, validation_alias=AliasChoices("LEDGER_VERIFY_INDEX", "ledger_verify_index"))


settings = Settings()
