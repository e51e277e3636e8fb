"""
API configuration settings.
"""

from typing import List, Optional

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Reading Log Books API"
    api_version: str = "1.0.0"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database Settings
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "reading_log"
    mongodb_collection: str = "books"
    store_timeout_seconds: float = 5.0

    # Security Settings
    access_token_secret: SecretStr = SecretStr("")
    jwt_algorithm: str = "HS256"
    jwt_leeway_seconds: int = 0
    require_auth_for_writes: bool = False

    # CORS Settings
    cors_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v):
        """Only HMAC algorithms can be verified with a shared secret."""
        valid_algorithms = ["HS256", "HS384", "HS512"]
        if v.upper() not in valid_algorithms:
            raise ValueError(f"jwt_algorithm must be one of: {valid_algorithms}")
        return v.upper()

    @field_validator("jwt_leeway_seconds")
    @classmethod
    def validate_leeway(cls, v):
        """Ensure leeway is not negative."""
        if v < 0:
            raise ValueError("jwt_leeway_seconds must be >= 0")
        return v

    @field_validator("store_timeout_seconds")
    @classmethod
    def validate_store_timeout(cls, v):
        """Ensure store calls are bounded."""
        if v <= 0:
            raise ValueError("store_timeout_seconds must be greater than 0")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()
