"""
Configuration — every interceptor option is a named, typed field.
Values come from keyword arguments, then JSON_LOGS_* environment variables,
then the defaults below.
"""

import socket
from functools import lru_cache
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JsonLogsSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="JSON_LOGS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        arbitrary_types_allowed=True,
    )

    # ── Failure handling ──────────────────────────────────────────────────────
    reraise_failures: bool = False

    # ── Record content ────────────────────────────────────────────────────────
    # Written as the record's "from" field.
    origin: str = Field(default_factory=socket.gethostname)

    # ── Output ────────────────────────────────────────────────────────────────
    pretty_print: bool = False
    formatter_options: dict[str, Any] = Field(default_factory=lambda: {"trace": True})
    sink: Any = None                  # path, writable handle, or None for stdout
    auto_flush: bool = True

    # ── Diagnostics ───────────────────────────────────────────────────────────
    log_level: str = "WARNING"


@lru_cache()
def get_settings() -> JsonLogsSettings:
    return JsonLogsSettings()
