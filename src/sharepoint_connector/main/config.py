import logging
import os
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _set_app_version():
    try:
        return version("sharepoint-connector")
    except PackageNotFoundError:
        return "0.0.0"


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    app_version: str = _set_app_version()
    port: int = 3000
    run_worker_in_api: bool = True

    # Redis
    redis_host: Optional[str] = None
    redis_port: int = 6379
    redis_db: Optional[int] = None
    redis_conn_timeout: int = 5
    redis_conn_retries: int = 5
    redis_conn_retry_delay: int = 1
    redis_retry_on_timeout: bool = True
    redis_max_connections: Optional[int] = None
    redis_socket_keepalive: bool = True
    redis_health_check_interval: int = 30

    # Queue and worker
    queue_name: str = "sharepoint-tasks"
    processing_concurrency: int = 4
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    job_timeout_seconds: int = 600
    dead_letter_max_entries: int = 1000

    # Microsoft Graph
    graph_client_id: Optional[str] = None
    graph_client_secret: Optional[str] = None
    graph_tenant_id: Optional[str] = None
    graph_api_base_url: str = "https://graph.microsoft.com/"
    graph_token_expiration_buffer_seconds: int = 15 * 60

    # SharePoint discovery, comma separated
    sharepoint_sites: str = ""
    sharepoint_sync_column_name: str = "FinanceGPTKnowledge"
    allowed_mime_types: str = ""

    # Pipeline
    step_timeout_seconds: float = 30
    max_file_size_bytes: int = 209715200
    content_key_prefix: str = "sharepoint"

    # Unique / Zitadel
    unique_ingestion_url: Optional[str] = None
    unique_ingestion_graphql_url: Optional[str] = None
    unique_scope_id: Optional[str] = None
    unique_api_min_request_interval_seconds: float = 0.05
    unique_file_diff_base_path: str = ""
    unique_file_diff_partial_key: str = "sharepoint"
    unique_token_expiration_buffer_seconds: int = 5 * 60
    zitadel_oauth_token_url: Optional[str] = None
    zitadel_project_id: Optional[str] = None
    zitadel_client_id: Optional[str] = None
    zitadel_client_secret: Optional[str] = None

    # Scan scheduling
    scan_interval_seconds: int = 15 * 60
    scan_lock_key: str = "sharepoint:scan:lock"
    scan_lock_ttl_seconds: Optional[int] = None

    @property
    def sharepoint_site_ids(self) -> list[str]:
        return _split_csv(self.sharepoint_sites)

    @property
    def allowed_mime_type_list(self) -> list[str]:
        return _split_csv(self.allowed_mime_types)

    @property
    def effective_scan_lock_ttl_seconds(self) -> int:
        """Lock lease length; a lease covers one full scan interval unless overridden."""
        return self.scan_lock_ttl_seconds or self.scan_interval_seconds

    @model_validator(mode="after")
    def validate_worker_settings(self):
        """Ensure worker-related configuration values are sane."""
        if self.processing_concurrency <= 0:
            logging.error(
                "PROCESSING_CONCURRENCY must be greater than zero. Current value: %s",
                self.processing_concurrency,
            )
            sys.exit(1)

        if self.max_retries < 1:
            logging.error(
                "MAX_RETRIES must be at least 1. Current value: %s",
                self.max_retries,
            )
            sys.exit(1)

        if self.step_timeout_seconds <= 0:
            logging.error(
                "STEP_TIMEOUT_SECONDS must be greater than zero. Current value: %s",
                self.step_timeout_seconds,
            )
            sys.exit(1)

        return self

    @model_validator(mode="after")
    def validate_scan_settings(self):
        """Ensure the scan lease can be renewed before it expires."""
        if self.scan_interval_seconds <= 0:
            logging.error(
                "SCAN_INTERVAL_SECONDS must be greater than zero. Current value: %s",
                self.scan_interval_seconds,
            )
            sys.exit(1)

        if self.scan_lock_ttl_seconds is not None and self.scan_lock_ttl_seconds < 3:
            logging.error(
                "SCAN_LOCK_TTL_SECONDS (%s) is too short to be renewed at two thirds of its length.",
                self.scan_lock_ttl_seconds,
            )
            sys.exit(1)

        return self


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton, creating it if needed.

    Returns:
        Settings: The application settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override settings (primarily for testing).

    Args:
        settings: The Settings instance to use.
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to None (for test cleanup)."""
    global _settings
    _settings = None


def get_loglevel():
    loglevel = os.getenv("LOGLEVEL", "INFO")

    match loglevel:
        case "INFO":
            return logging.INFO
        case "WARNING":
            return logging.WARNING
        case "ERROR":
            return logging.ERROR
        case "CRITICAL":
            return logging.CRITICAL
        case "DEBUG":
            return logging.DEBUG
        case _:
            return logging.INFO
