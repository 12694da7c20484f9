from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "gallery-listing-service"
    app_env: str = "production"
    log_level: str = "info"

    # Required at request time; absence surfaces as a ConfigError.
    s3_bucket_name: str | None = None
    public_url_base: str | None = None

    aws_region: str | None = None
    aws_endpoint_url: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None

    upstream_max_attempts: int = Field(default=2, ge=1)
    upstream_connect_timeout: float = Field(default=2.0, gt=0)
    upstream_read_timeout: float = Field(default=5.0, gt=0)

    cache_ttl_seconds: float = Field(default=300.0, ge=0)
    cache_stale_ttl_seconds: float = Field(default=3600.0, ge=0)
    cache_max_entries: int = Field(default=500, ge=1)

    max_prefix_length: int = Field(default=1024, ge=1)
    max_token_length: int = Field(default=1024, ge=1)

    model_config = SettingsConfigDict(env_file=".env", env_prefix="GALLERY_")

    @property
    def debug(self) -> bool:
        return self.app_env == "dev"

    def missing_required(self) -> list[str]:
        return [
            name
            for name, value in (
                ("s3_bucket_name", self.s3_bucket_name),
                ("public_url_base", self.public_url_base),
            )
            if not value
        ]


@lru_cache
def get_settings() -> Settings:
    return Settings()
