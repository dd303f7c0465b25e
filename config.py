"""Application configuration."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Application
    app_env: str = "development"
    log_level: str = "INFO"
    secret_key: str = "changeme"
    
    # Database
    database_url: str = "sqlite:///./load_workflow.db"
    redis_url: str = "redis://localhost:6379/0"
    
    # Notifications
    notifications_enabled: bool = True
    push_gateway_url: Optional[str] = None
    
    # Workflow
    damage_undo_window_seconds: int = 5
    delivery_start_max_attempts: int = 3
    default_delivery_index: int = 1
    
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.app_env == "production"
    
    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.app_env == "development"
    
    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.app_env == "testing"
    
    def validate_required_settings(self) -> list[str]:
        """
        Validate that all required settings are configured.
        
        Returns:
            List of missing or invalid settings
        """
        errors = []
        
        if self.is_production and (not self.secret_key or self.secret_key == "changeme"):
            errors.append("SECRET_KEY must be set to a secure value")
        
        if not self.database_url:
            errors.append("DATABASE_URL is required")
        
        if self.notifications_enabled and not self.redis_url:
            errors.append("REDIS_URL is required when notifications are enabled")
        
        if self.damage_undo_window_seconds <= 0:
            errors.append("damage_undo_window_seconds must be positive")
        
        if self.delivery_start_max_attempts < 1:
            errors.append("delivery_start_max_attempts must be at least 1")
        
        if self.default_delivery_index < 1:
            errors.append("default_delivery_index must be at least 1")
        
        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
