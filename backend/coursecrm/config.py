"""
CourseCRM Application Configuration
Security settings and environment configuration
"""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "CourseCRM"
    app_version: str = "1.0.0"
    debug: bool = False

    # Security
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # Database
    database_url: str = "sqlite:///./coursecrm.db"

    # Allowed hosts for CORS (configurable via environment)
    allowed_origins: List[str] = Field(
        default_factory=lambda: os.getenv("COURSECRM_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    )

    # Logging
    log_level: str = "INFO"
    audit_log_file: Optional[str] = None

    # Audit dispatch
    audit_queue_size: int = Field(default=1000, description="Pending audit records before new ones are dropped")
    audit_shutdown_timeout: float = Field(default=5.0, description="Seconds to wait for the audit queue on shutdown")

    @validator("secret_key")
    def secret_key_must_be_strong(cls, v):
        if len(v) < 32:
            raise ValueError("Secret key must be at least 32 characters long")
        return v

    @validator("allowed_origins")
    def validate_origins(cls, v):
        for origin in v:
            if not origin.startswith(("https://", "http://localhost")):
                raise ValueError("All origins must use HTTPS (except localhost)")
        return v

    @validator("audit_queue_size")
    def audit_queue_must_be_bounded(cls, v):
        if v < 1:
            raise ValueError("Audit queue size must be at least 1")
        return v

    class Config:
        env_file = ".env"
        env_prefix = "COURSECRM_"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()


SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
