from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOCKROOM_", env_file=".env", case_sensitive=False)

    app_name: str = "Stockroom Admin"
    api_prefix: str = "/api"
    database_url: str = Field(
        default="sqlite:///./stockroom.db",
        description="SQLAlchemy compatible database URL",
    )
    echo_sql: bool = False
    secret_key: str = Field(default="dev-only-secret-key-change-me", description="Signs session cookies")
    session_max_age: int = 60 * 60 * 8
    default_page_size: int = 10
    max_page_size: int = 200
    cors_origins: List[str] = Field(default_factory=list)
    enable_seed_data: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None
    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False
    in_house_destination: str = "In-house"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
