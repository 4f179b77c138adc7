"""Sync and housekeeping settings.

Environment variables (all optional; direct kwargs take precedence):
    PAGEHUB_AUTO_SYNC:      ``1``/``true`` enables the periodic pull cycle
    PAGEHUB_SYNC_INTERVAL:  base seconds between auto-sync ticks (default 30)
    PAGEHUB_REMOTE:         remote name (default ``origin``)
    PAGEHUB_BRANCH:         branch to pull/push (default: current branch)
    PAGEHUB_GIT_TOKEN:      access token for HTTPS remotes
    PAGEHUB_AUTHOR_NAME:    commit author name
    PAGEHUB_AUTHOR_EMAIL:   commit author email
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

DEFAULT_AUTHOR_NAME = "Knowledge Hub User"
DEFAULT_AUTHOR_EMAIL = "user@knowledgehub.local"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class SyncSettings:
    enabled: bool = True
    interval_seconds: float = 30.0
    remote: str = "origin"
    branch: str | None = None
    token: str | None = None
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL
    #: Consecutive auto-sync failures after which the interval is doubled
    backoff_threshold: int = 3
    trash_max_age_days: int = 30

    @classmethod
    def from_env(cls, **overrides: Any) -> "SyncSettings":
        """Build settings from ``PAGEHUB_*`` variables, then apply *overrides*."""
        values: dict[str, Any] = {}

        auto = os.getenv("PAGEHUB_AUTO_SYNC")
        if auto is not None:
            values["enabled"] = auto.strip().lower() in _TRUTHY
        interval = os.getenv("PAGEHUB_SYNC_INTERVAL")
        if interval:
            values["interval_seconds"] = float(interval)
        for key, var in (
            ("remote", "PAGEHUB_REMOTE"),
            ("branch", "PAGEHUB_BRANCH"),
            ("token", "PAGEHUB_GIT_TOKEN"),
            ("author_name", "PAGEHUB_AUTHOR_NAME"),
            ("author_email", "PAGEHUB_AUTHOR_EMAIL"),
        ):
            val = os.getenv(var)
            if val:
                values[key] = val

        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown sync settings: {', '.join(sorted(unknown))}")
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
