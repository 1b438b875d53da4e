import os
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .constants import DEFAULT_ADMIN_PASSWORD, MAX_RESULTS_LISTING


class Settings(BaseSettings):
    database_url: str = Field("sqlite:///academy.db", alias="ACADEMY_DATABASE_URL")
    database_pool_size: int = Field(10, alias="ACADEMY_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="ACADEMY_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="ACADEMY_DATABASE_ECHO")
    admin_password: str = Field(
        DEFAULT_ADMIN_PASSWORD,
        validation_alias=AliasChoices("ACADEMY_ADMIN_PASSWORD", "ADMIN_PW"),
    )
    host: str = Field("0.0.0.0", alias="ACADEMY_HOST")
    port: int = Field(3000, validation_alias=AliasChoices("ACADEMY_PORT", "PORT"))
    static_dir: Optional[str] = Field(None, alias="ACADEMY_STATIC_DIR")
    auto_create_schema: bool = Field(True, alias="ACADEMY_AUTO_CREATE_SCHEMA")
    atomic_cascades: bool = Field(False, alias="ACADEMY_ATOMIC_CASCADES")
    results_listing_cap: int = Field(MAX_RESULTS_LISTING, alias="ACADEMY_RESULTS_LISTING_CAP", ge=1)

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    @field_validator("results_listing_cap")
    @classmethod
    def _clamp_listing_cap(cls, value: int) -> int:
        return min(value, MAX_RESULTS_LISTING)

    @property
    def uses_default_admin_password(self) -> bool:
        return self.admin_password == DEFAULT_ADMIN_PASSWORD


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
