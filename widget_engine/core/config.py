"""
Configuration module for the Chat Widget Engine.
Manages environment variables and application settings.
"""
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API Configuration
    app_name: str = "Chat Widget Engine"
    app_version: str = "1.0.0"
    debug: bool = Field(default=False)

    # MongoDB Configuration (durable store is optional - no URL means ephemeral sessions only)
    mongo_url: Optional[str] = Field(default=None)
    mongo_db_name: str = Field(default="chat_widget")
    probe_timeout_seconds: float = 3.0

    # Inference endpoint
    inference_url: str = Field(default="http://localhost:8888/api/chatbot/message")
    inference_timeout_seconds: float = 15.0

    # Visitor identity
    visitor_storage_key: str = "widget_visitor_id"
    visitor_cookie_max_age_days: int = 365
    # Embedded single-visitor use: keep the visitor id in a JSON file instead of memory
    visitor_storage_path: Optional[str] = Field(default=None)

    # Widget copy
    assistant_name: str = "Larry"
    company_name: str = "Rule27 Design"
    custom_welcome: Optional[str] = Field(default=None)
    contact_email: str = "hello@rule27design.com"
    contact_phone: str = "(555) 785-3227"

    # Attachments carry metadata only; size is checked against this limit
    max_attachment_bytes: int = 10 * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
