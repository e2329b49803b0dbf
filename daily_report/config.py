"""Application configuration using Pydantic Settings."""

from datetime import time
from email.utils import parseaddr
from functools import lru_cache
from typing import List, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_address(value: str) -> bool:
    _, parsed = parseaddr(value)
    local, _, domain = value.rpartition("@")
    return parsed == value and bool(local) and bool(domain)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Workflow engine
    DIFY_API_ENDPOINT: str
    DIFY_API_KEY: str
    DIFY_RESPONSE_MODE: Literal["blocking", "streaming"] = "blocking"
    DIFY_USER_ID: str = "daily-report-system"

    # Polling
    WORKFLOW_POLL_ATTEMPTS: int = Field(default=30, ge=1)
    WORKFLOW_POLL_INTERVAL: float = Field(default=10.0, ge=0)  # seconds
    WORKFLOW_REQUEST_TIMEOUT: float = Field(default=120.0, gt=0)

    # SMTP
    SMTP_HOST: str
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False  # implicit TLS (port 465)
    SMTP_TIMEOUT: float = 30.0
    EMAIL_USER: str  # sender address
    EMAIL_PASS: str = ""
    EMAIL_FROM_NAME: str = "Daily Report System"
    EMAIL_RECIPIENTS: str

    # Report
    REPORT_TITLE: str = "Daily Report"
    REPORT_TYPE: str = "daily"
    COMPANY_NAME: str = "Your Company"

    # Schedule
    SCHEDULE_TIME: time = time(6, 0)
    SCHEDULE_TIMEZONE: str = "UTC"
    RUN_ON_START: bool = False

    # Server
    PORT: int = 3000

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @field_validator("DIFY_API_ENDPOINT")
    @classmethod
    def strip_endpoint(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("DIFY_API_ENDPOINT must be an http(s) URL")
        return value

    @field_validator("EMAIL_USER")
    @classmethod
    def validate_sender(cls, value: str) -> str:
        value = value.strip()
        if not _is_address(value):
            raise ValueError(f"EMAIL_USER must be an email address, got {value!r}")
        return value

    @field_validator("EMAIL_RECIPIENTS")
    @classmethod
    def validate_recipients(cls, value: str) -> str:
        addresses = [item.strip() for item in value.split(",") if item.strip()]
        if not addresses:
            raise ValueError("EMAIL_RECIPIENTS must list at least one address")
        for address in addresses:
            if not _is_address(address):
                raise ValueError(f"Invalid recipient address: {address!r}")
        return ",".join(addresses)

    @field_validator("SCHEDULE_TIMEZONE")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @property
    def recipients(self) -> List[str]:
        """Recipient addresses in configured order."""
        return self.EMAIL_RECIPIENTS.split(",")

    @property
    def timezone(self) -> ZoneInfo:
        return ZoneInfo(self.SCHEDULE_TIMEZONE)


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings once per process."""
    return Settings()
