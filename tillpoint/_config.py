"""
Settings — runtime configuration.

    settings = Settings.from_env().with_transaction_timeout(seconds=5)

Immutable — each `with_*` method returns a new Settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta


@dataclass(frozen=True, slots=True)
class Settings:
    database_url: str = "sqlite+aiosqlite:///:memory:"
    # Upper bound on one order write (stock + discount usage + order row).
    transaction_timeout: timedelta = timedelta(seconds=15)
    low_stock_threshold: int = 10
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> Settings:
        defaults = cls()
        timeout = os.getenv("TILLPOINT_TRANSACTION_TIMEOUT")
        threshold = os.getenv("TILLPOINT_LOW_STOCK_THRESHOLD")
        port = os.getenv("PORT")
        return cls(
            database_url=os.getenv("TILLPOINT_DATABASE_URL", defaults.database_url),
            transaction_timeout=(
                timedelta(seconds=float(timeout))
                if timeout
                else defaults.transaction_timeout
            ),
            low_stock_threshold=int(threshold) if threshold else defaults.low_stock_threshold,
            log_level=os.getenv("TILLPOINT_LOG_LEVEL", defaults.log_level),
            host=os.getenv("HOST", defaults.host),
            port=int(port) if port else defaults.port,
        )

    def with_database_url(self, url: str) -> Settings:
        return replace(self, database_url=url)

    def with_transaction_timeout(
        self,
        seconds: float | None = None,
        duration: timedelta | None = None,
    ) -> Settings:
        """
        Example:
            settings.with_transaction_timeout(seconds=5)
            settings.with_transaction_timeout(duration=timedelta(minutes=1))
        """
        if duration is not None:
            return replace(self, transaction_timeout=duration)
        if seconds is not None:
            return replace(self, transaction_timeout=timedelta(seconds=seconds))
        raise ValueError("Must provide seconds or duration")

    def with_low_stock_threshold(self, threshold: int) -> Settings:
        if threshold < 0:
            raise ValueError("threshold must be >= 0")
        return replace(self, low_stock_threshold=threshold)


__all__ = ("Settings",)
