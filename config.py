"""Configuration module for Family Connect reminder service.

This module provides configuration settings using Pydantic Settings.
Environment variables can be used to override default values.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for Family Connect.

    All settings can be overridden via environment variables.
    Example: export SENDGRID_API_KEY="SG.xxxx"
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./family_connect.db"
    """Local state store URL. Default: SQLite file in current directory"""

    MIRROR_DATABASE_URL: Optional[str] = None
    """Optional shared store mirrored on every save (multi-device sync)"""

    # Family API Configuration
    API_HOST: str = "0.0.0.0"
    """Family API server host address"""

    API_PORT: int = 8005
    """Family API server port"""

    CORS_ORIGINS: List[str] = ["*"]
    """Origins allowed to call the family API"""

    # Relay Endpoint Configuration
    RELAY_HOST: str = "0.0.0.0"
    """Relay server host address"""

    RELAY_PORT: int = 8006
    """Relay server port (separate from the family API)"""

    RELAY_PATH: str = "/api/send-reminder"
    """Path the relay endpoint is mounted on"""

    FAMILY_CONNECT_API_KEY: Optional[str] = None
    """Shared secret checked against the x-api-key header. Unset: endpoint is open"""

    # Email provider (SendGrid)
    SENDGRID_API_KEY: Optional[str] = None
    """SendGrid API key. Required for the relay to send"""

    SENDGRID_FROM_EMAIL: Optional[str] = None
    """Verified sender address. Required for the relay to send"""

    SENDGRID_API_HOST: str = "https://api.sendgrid.com"
    """SendGrid API host used by SendGridAPIClient"""

    SMS_SUBJECT: str = "Family Connect Reminder"
    """Subject line of the gateway email"""

    # Relay client (used by the dispatcher and send-now)
    RELAY_URL: Optional[str] = "http://127.0.0.1:8006/api/send-reminder"
    """Full URL of the relay endpoint the dispatcher calls"""

    RELAY_API_KEY: Optional[str] = None
    """x-api-key sent by the dispatcher when set"""

    RELAY_TIMEOUT: float = 30.0
    """Timeout in seconds for a single relay call"""

    # Background Worker Configuration
    WORKER_ENABLED: bool = True
    """Enable/disable the reminder dispatcher"""

    WORKER_CHECK_INTERVAL: int = 60
    """Interval in seconds between due-reminder scans (default: 60 seconds)"""

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
