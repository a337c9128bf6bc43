"""Configuration management for watchparty"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings


class ConfigurationError(Exception):
    """Required startup configuration is missing or invalid"""


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    app_name: str = "watchparty"
    debug: bool = Field(default=False, alias="WATCHPARTY_DEBUG")

    # Provisioning (Hyperbeam)
    hyperbeam_api_key: Optional[str] = Field(default=None, alias="HYPERBEAM_API_KEY")
    hyperbeam_api_url: str = Field(default="https://api.hyperbeam.com/v0", alias="HYPERBEAM_API_URL")
    hyperbeam_start_url: Optional[str] = Field(default=None, alias="HYPERBEAM_START_URL")
    hyperbeam_region: Optional[str] = Field(default=None, alias="HYPERBEAM_REGION")
    provisioning_timeout: float = Field(default=30.0, gt=0, alias="PROVISIONING_TIMEOUT")

    # Servers
    host: str = Field(default="127.0.0.1", alias="WATCHPARTY_HOST")
    http_port: int = Field(default=3001, alias="PORT")
    gateway_port: int = Field(default=3002, alias="GATEWAY_PORT")
    cors_origin: str = Field(default="*", alias="CORS_ORIGIN")

    # Logging & Observability
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: bool = Field(default=False, alias="LOG_JSON")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True
        extra = "ignore"

    @classmethod
    def from_file(cls, path: str) -> "Settings":
        """Load settings from YAML file"""
        with open(path, "r") as f:
            config = yaml.safe_load(f) or {}
        return cls(**config)

    def to_file(self, path: str):
        """Save settings to YAML file. Creates parent directory if needed."""
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        with open(p, "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False)

    def require_provisioning_credentials(self):
        """Fail fast when the provisioning API key is not configured"""
        if not self.hyperbeam_api_key:
            raise ConfigurationError("HYPERBEAM_API_KEY is not set (environment, .env or config file)")
