"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import os

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class LoggingConfig(BaseSettings):
    level: str = "INFO"


class PaginationConfig(BaseSettings):
    default_page_size: int = 20
    max_page_size: int = 100


class DispatchConfig(BaseSettings):
    number_prefix: str = "DISP"


class AttachmentConfig(BaseSettings):
    base_dir: str = "data/attachments"


class AuthConfig(BaseSettings):
    token_max_age_days: int = 30


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/fieldops.db"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    attachments: AttachmentConfig = Field(default_factory=AttachmentConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "FIELDOPS_"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    log = LoggingConfig(**y.get("logging", {}))
    pag = PaginationConfig(**y.get("pagination", {}))
    disp = DispatchConfig(**y.get("dispatch", {}))
    att = AttachmentConfig(**y.get("attachments", {}))
    auth = AuthConfig(**y.get("auth", {}))
    db_url = os.environ.get("FIELDOPS_DATABASE_URL") or y.get("database", {}).get(
        "url", "sqlite+aiosqlite:///data/fieldops.db"
    )
    return Settings(
        database_url=db_url,
        logging=log,
        pagination=pag,
        dispatch=disp,
        attachments=att,
        auth=auth,
    )
