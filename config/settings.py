"""Configuration management using pydantic-settings."""
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class FetcherSettings(BaseSettings):
    """Fetcher settings loaded from environment variables."""

    # Seeds the cache defaults below; never detected from the environment
    execution_context: Literal["client", "server"] = "client"

    # Cache behaviour (None = use the execution context default)
    read_from_cache: Optional[bool] = None
    write_to_cache: Optional[bool] = None
    background_revalidation: Optional[bool] = None

    # Freshness throttle
    check_fresh_interval_ms: int = 10000
    freshness_max_keys: int = 10000

    # Share one remote call between concurrent misses for the same key
    coalesce_requests: bool = True

    # Remote API (Parse-style REST)
    remote_base_url: str = "https://api.parse.com/1"
    remote_app_id: Optional[str] = None
    remote_api_key: Optional[str] = None
    remote_timeout_seconds: float = 30.0
    remote_max_workers: int = 8

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def is_client(self) -> bool:
        return self.execution_context == "client"

    @property
    def resolved_read_from_cache(self) -> bool:
        if self.read_from_cache is None:
            return self.is_client
        return self.read_from_cache

    @property
    def resolved_write_to_cache(self) -> bool:
        if self.write_to_cache is None:
            return self.is_client
        return self.write_to_cache

    @property
    def resolved_background_revalidation(self) -> bool:
        """Background revalidation only makes sense where cached objects live on."""
        if self.background_revalidation is None:
            return self.is_client
        return self.background_revalidation


settings = FetcherSettings()
