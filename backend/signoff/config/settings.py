"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage: "mongo" for the MongoDB repositories, "memory" for in-process stores
    storage_backend: str = "mongo"

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "signoff_dev"

    # Socket a condition node falls back to when neither a rule nor its config picks one
    default_condition_output_point: str = "out-right"

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_to_file: bool = True

    # Replayable sign-off outcomes kept per process (oldest evicted first)
    idempotency_cache_size: int = 1024

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def uses_memory_storage(self) -> bool:
        """Check if in-process stores are configured"""
        return self.storage_backend.lower() == "memory"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
