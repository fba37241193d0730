"""
bugdesk configuration.

Everything comes from the environment so the same package runs as a
throwaway in-memory tracker (tests, demos) or against a JSON snapshot on disk.
"""

import os
from typing import List, Mapping, Optional

from pydantic import BaseModel, Field, field_validator


DEFAULT_KEY_PREFIX = "bugTracker_"


class Settings(BaseModel):
    """Runtime settings for the tracker core and its HTTP surface."""

    # Empty / None = in-memory store
    store_path: Optional[str] = None
    key_prefix: str = DEFAULT_KEY_PREFIX
    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    recent_tickets: int = Field(default=6, ge=0)

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        origins = env.get("BUGDESK_CORS_ORIGINS", "*")
        return cls(
            store_path=env.get("BUGDESK_STORE_PATH") or None,
            key_prefix=env.get("BUGDESK_KEY_PREFIX", DEFAULT_KEY_PREFIX),
            log_level=env.get("BUGDESK_LOG_LEVEL", "INFO"),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            recent_tickets=int(env.get("BUGDESK_RECENT_TICKETS", "6")),
        )
