from typing import Optional, Literal, List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import SecretStr, Field, field_validator


class Settings(BaseSettings):
    """
    Application Settings managed by Pydantic.
    Reads from environment variables and .env file.
    """

    # ============================================
    # Environment & Application Settings
    # ============================================
    environment: Literal["development", "staging", "production"] = Field(
        "development", alias="ENVIRONMENT"
    )
    debug: bool = Field(False, alias="DEBUG")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # ============================================
    # Server Configuration
    # ============================================
    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8000, alias="PORT")
    cors_origins: str = Field(
        "http://localhost:3000,http://127.0.0.1:3000",
        alias="CORS_ORIGINS"
    )

    # ============================================
    # Request Limits
    # ============================================
    max_request_size: int = Field(1024 * 1024, alias="MAX_REQUEST_SIZE")  # 1MB

    # ============================================
    # Redis (optional flag result cache)
    # ============================================
    redis_url: Optional[str] = Field(None, alias="REDIS_URL")

    # Supabase
    supabase_url: Optional[str] = Field(None, alias="SUPABASE_URL")
    supabase_anon_key: Optional[str] = Field(None, alias="SUPABASE_ANON_KEY")
    supabase_service_key: Optional[SecretStr] = Field(None, alias="SUPABASE_SERVICE_KEY")
    supabase_jwt_secret: Optional[str] = Field(None, alias="SUPABASE_JWT_SECRET")

    # ============================================
    # Feature Flags
    # ============================================
    flag_store_backend: Literal["supabase", "memory"] = Field("supabase", alias="FLAG_STORE_BACKEND")
    flag_cache_ttl_seconds: int = Field(0, alias="FLAG_CACHE_TTL_SECONDS")  # 0 disables caching
    flag_max_custom_users: int = Field(1000, alias="FLAG_MAX_CUSTOM_USERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ============================================
    # Production Helper Properties
    # ============================================

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def flag_cache_enabled(self) -> bool:
        return self.flag_cache_ttl_seconds > 0

    def get_cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_supabase_key(self) -> str:
        """Service role key when configured, anon key otherwise."""
        if self.supabase_service_key:
            return self.supabase_service_key.get_secret_value()
        if self.supabase_anon_key:
            return self.supabase_anon_key
        raise ValueError("Supabase key not found. Set SUPABASE_SERVICE_KEY or SUPABASE_ANON_KEY in .env")

    def get_log_level(self) -> int:
        """Convert log level string to logging constant."""
        import logging
        levels = {
            "DEBUG": logging.DEBUG,
            "INFO": logging.INFO,
            "WARNING": logging.WARNING,
            "ERROR": logging.ERROR,
            "CRITICAL": logging.CRITICAL,
        }
        return levels.get(self.log_level.upper(), logging.INFO)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid option."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @field_validator("flag_cache_ttl_seconds")
    @classmethod
    def validate_flag_cache_ttl(cls, v: int) -> int:
        if v < 0:
            raise ValueError("flag_cache_ttl_seconds must not be negative")
        return v

    @field_validator("flag_max_custom_users")
    @classmethod
    def validate_flag_max_custom_users(cls, v: int) -> int:
        """Validate the custom targeting cap is positive."""
        if v <= 0:
            raise ValueError("flag_max_custom_users must be positive")
        return v

settings = Settings()
