from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Category Admin API"
    debug: bool = False

    # Supabase
    supabase_url: str
    supabase_key: str

    # Repository
    repository_backend: Literal["supabase", "memory"] = "supabase"
    categories_table: str = "categories"
    resources_table: str = "resources"
    repository_timeout: float = 10.0

    # Mutations
    default_delete_strategy: Literal["cascade", "reparent_children"] = "cascade"

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    # CORS
    frontend_url: str = "http://localhost:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
