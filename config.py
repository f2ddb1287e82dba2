"""
Application configuration.

Loads settings from environment variables (and `.env`) once at startup.
The resulting object is passed explicitly to the token service, password
hasher and database constructors.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Storage
    storage_backend: Literal["mongo", "memory"] = "mongo"
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "quiz"

    # Auth
    jwt_secret: str = "super-secret-key-change"
    jwt_algorithm: str = "HS256"
    token_expire_days: int = 5
    bcrypt_rounds: int = 12

    # Optional admin account created on startup
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    # Server
    port: int = 3000
    cors_origins: str = "http://localhost:8080"
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
