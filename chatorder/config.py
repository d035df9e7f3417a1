"""
Application configuration using Pydantic Settings
"""

from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database (empty disables the bot with a "temporarily unavailable" reply)
    database_url: str = ""

    # Messenger / Graph API
    fb_page_access_token: str = ""
    fb_app_secret: str = ""
    fb_verify_token: str = ""
    graph_api_url: str = "https://graph.facebook.com"
    graph_api_version: str = "v17.0"
    send_timeout_seconds: float = 10.0
    require_signature: bool = False

    # Dialogue
    session_write_attempts: int = 2
    default_customer_name: str = "Messenger Customer"
    restaurant_name: str = "Ate Lorie's POS"
    currency_symbol: str = "₱"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    cors_origins: str = "http://localhost:5173"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def graph_base_url(self) -> str:
        return f"{self.graph_api_url.rstrip('/')}/{self.graph_api_version}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
