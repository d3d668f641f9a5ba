from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PRODUCT_SEED = Path(__file__).resolve().parent / "data" / "products.json"


class Settings(BaseSettings):
    app_name: str = Field("Tilehub Orders", alias="APP_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    jwt_secret: str = Field("change-me", alias="JWT_SECRET")
    jwt_issuer: str = Field("tilehub-identity", alias="JWT_ISSUER")
    jwt_audience: str = Field("authenticated", alias="JWT_AUDIENCE")
    database_url: str = Field("", alias="DATABASE_URL")
    db_echo: bool = Field(False, alias="DB_ECHO")
    product_seed_path: str = Field(str(DEFAULT_PRODUCT_SEED), alias="PRODUCT_SEED_PATH")
    atomic_stock_decrement: bool = Field(False, alias="ATOMIC_STOCK_DECREMENT")
    cors_allow_origins: str = Field("*", alias="CORS_ALLOW_ORIGINS")
    request_id_header: str = Field("X-Request-Id", alias="REQUEST_ID_HEADER")
    default_page_size: int = Field(20, alias="DEFAULT_PAGE_SIZE")
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8000, alias="PORT")

    model_config = SettingsConfigDict(extra="ignore")

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


def resolve_env_file() -> Optional[Path]:
    explicit = os.getenv("TILEHUB_ENV_FILE")
    if explicit:
        return Path(explicit)
    default = Path.cwd() / "config" / "api.env"
    if default.exists():
        return default
    return None


def load_settings() -> Settings:
    env_file = resolve_env_file()
    if env_file:
        return Settings(_env_file=str(env_file))
    return Settings()
