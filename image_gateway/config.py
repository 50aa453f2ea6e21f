from __future__ import annotations

import json
from functools import lru_cache
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()


class Settings(BaseSettings):
    """Gateway configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Engine selection
    image_engine: str = Field("pillow", description="Registered image engine name.")

    # Source storage
    storage_dir: str = Field("./public", description="Root directory for relative image locators.")
    remote_domains: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Hosts allowed for http(s) locators. Empty means any host.",
    )
    fetch_timeout: float = Field(10.0, description="Timeout in seconds for remote source fetches.")
    max_source_bytes: int = Field(20 * 1024 * 1024, description="Largest source image accepted (bytes).")

    # Logging
    log_level: str = Field("INFO")

    @field_validator("remote_domains", mode="before")
    @classmethod
    def _split_domains(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            value = json.loads(value) if value.startswith("[") else value.split(",")
        if isinstance(value, (list, tuple)):
            return [str(d).strip().lower() for d in value if str(d).strip()]
        return value


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
