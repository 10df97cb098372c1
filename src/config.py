from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    console_api_base_url: str = "http://localhost:3000"
    console_api_token: str | None = None
    console_api_timeout_seconds: float = 12.0
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60
    provider_catalog_path: str = "/api/esp/providers"
    required_scope_fetch_workers: int = 4
    account_fetch_workers: int = 8
    bulk_link_max_rows: int = 500  # upstream rejects larger batches
    cors_allow_origins: list[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
