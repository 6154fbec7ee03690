"""Sync configuration loaded from environment variables."""

import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


class SyncConfig:
    """Settings shared by the sync use cases and the scheduler.

    Environment Variables:
        SYNC_WINDOW_DAYS: Default trailing window when no dates are given (default: 30)
        TOKEN_REFRESH_AHEAD_MINUTES: Refresh tokens expiring within this many
            minutes during scheduled runs (default: 10)
    """

    def __init__(
        self,
        window_days: int | None = None,
        refresh_ahead_minutes: int | None = None,
    ):
        self.window_days = window_days if window_days is not None else int(
            os.getenv("SYNC_WINDOW_DAYS", "30")
        )
        self.refresh_ahead_minutes = refresh_ahead_minutes if refresh_ahead_minutes is not None else int(
            os.getenv("TOKEN_REFRESH_AHEAD_MINUTES", "10")
        )
        if self.window_days <= 0:
            raise ValueError("SYNC_WINDOW_DAYS must be positive")

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.window_days)

    @property
    def refresh_ahead(self) -> timedelta:
        return timedelta(minutes=self.refresh_ahead_minutes)

    def __repr__(self):
        return (
            f"SyncConfig("
            f"window={self.window_days}d, "
            f"refresh_ahead={self.refresh_ahead_minutes}m)"
        )
