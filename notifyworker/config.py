"""Worker configuration settings."""

import logging
from dataclasses import dataclass
from functools import lru_cache
from urllib.parse import quote

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


@dataclass(frozen=True)
class SmtpSettings:
    """SMTP parameters for the email notifier."""

    server: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    sender_email: str | None = None
    sender_name: str = "Notification System"
    use_tls: bool = True
    timeout: float = 30.0

    @property
    def complete(self) -> bool:
        return bool(self.server and self.username and self.sender_email)


class Settings(BaseSettings):
    """Worker configuration values loaded from environment variables.

    Every field maps to ``NOTIFYWORKER_<FIELD>``, e.g. ``NOTIFYWORKER_RABBITMQ_HOST``.
    """

    model_config = SettingsConfigDict(
        env_prefix="NOTIFYWORKER_",
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    rabbitmq_host: str = Field(default="localhost", min_length=1)
    rabbitmq_port: int = Field(default=5672, gt=0)
    rabbitmq_user: str = "guest"
    rabbitmq_password: str = "guest"
    rabbitmq_vhost: str = "/"
    rabbitmq_reconnect_interval: float = Field(
        default=10.0,
        gt=0,
        description="Seconds between reconnection attempts after the connection drops",
    )

    mongodb_connection_string: str | None = None
    mongodb_database_name: str | None = None
    mongodb_collection_name: str | None = None

    redis_audit_url: str | None = Field(
        default=None,
        description="Redis URL for the audit stream, used when MongoDB is not configured",
    )
    redis_audit_stream: str = "notifyworker:audit"

    smtp_server: str | None = None
    smtp_port: int = Field(default=587, gt=0)
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_sender_email: str | None = None
    smtp_use_tls: bool = True

    log_level: str = "INFO"
    pull_timeout: float = Field(default=1.0, gt=0)
    max_consecutive_broker_failures: int = Field(default=10, gt=0)

    @model_validator(mode="after")
    def _validate_sender(self) -> "Settings":
        if self.smtp_sender_email and "@" not in self.smtp_sender_email:
            raise ValueError("NOTIFYWORKER_SMTP_SENDER_EMAIL must be a valid email address")
        return self

    @property
    def rabbitmq_url(self) -> str:
        vhost = quote(self.rabbitmq_vhost, safe="")
        return (
            f"amqp://{quote(self.rabbitmq_user, safe='')}:{quote(self.rabbitmq_password, safe='')}"
            f"@{self.rabbitmq_host}:{self.rabbitmq_port}/{vhost}"
        )

    @property
    def logging_level(self) -> int:
        """Numeric level for ``log_level``; unknown names fall back to INFO."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        return level if isinstance(level, int) else logging.INFO

    @property
    def mongodb_enabled(self) -> bool:
        return bool(
            self.mongodb_connection_string
            and self.mongodb_database_name
            and self.mongodb_collection_name
        )

    @property
    def redis_audit_enabled(self) -> bool:
        return bool(self.redis_audit_url)

    @property
    def smtp(self) -> SmtpSettings:
        return SmtpSettings(
            server=self.smtp_server,
            port=self.smtp_port,
            username=self.smtp_username,
            password=self.smtp_password,
            sender_email=self.smtp_sender_email,
            use_tls=self.smtp_use_tls,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""
    get_settings.cache_clear()


__all__ = ["Settings", "SmtpSettings", "get_settings", "reset_settings_cache"]
