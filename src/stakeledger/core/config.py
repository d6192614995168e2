"""
stakeledger Configuration

Runtime settings are read from environment variables:

    STAKELEDGER_ENVIRONMENT   development | staging | production (default: development)
    STAKELEDGER_LOG_LEVEL     DEBUG | INFO | WARNING | ERROR | CRITICAL (default: INFO)
    STAKELEDGER_LOG_FILE      optional path for rotating JSON logs
    STAKELEDGER_START_TIME    optional integer timestamp for a manual clock

Ledger economics (tiers, scale) are fixed in code and are not configurable.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping

from .environment import Clock
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "STAKELEDGER_"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentType(Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass(frozen=True)
class LedgerConfig:
    environment: EnvironmentType = EnvironmentType.DEVELOPMENT
    log_level: str = "INFO"
    log_file: str | None = None
    start_time: int | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "LedgerConfig":
        """Build a config from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ

        raw_environment = env.get(f"{ENV_PREFIX}ENVIRONMENT", "development").strip().lower()
        try:
            environment = EnvironmentType(raw_environment)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown {ENV_PREFIX}ENVIRONMENT: {raw_environment!r}",
                details={"allowed": [e.value for e in EnvironmentType]},
            ) from exc

        log_level = env.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO").strip().upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid {ENV_PREFIX}LOG_LEVEL: {log_level!r}",
                details={"allowed": list(VALID_LOG_LEVELS)},
            )

        log_file = env.get(f"{ENV_PREFIX}LOG_FILE", "").strip() or None

        start_time = None
        raw_start = env.get(f"{ENV_PREFIX}START_TIME", "").strip()
        if raw_start:
            try:
                start_time = int(raw_start)
            except ValueError as exc:
                raise ConfigurationError(
                    f"{ENV_PREFIX}START_TIME must be an integer timestamp, got {raw_start!r}"
                ) from exc
            if start_time < 0:
                raise ConfigurationError(f"{ENV_PREFIX}START_TIME cannot be negative")

        config = cls(
            environment=environment,
            log_level=log_level,
            log_file=log_file,
            start_time=start_time,
        )
        logger.debug(
            "Loaded configuration",
            extra={"event": "config.loaded", "environment": environment.value, "log_level": log_level},
        )
        return config

    def build_clock(self) -> Clock:
        """Manual clock at START_TIME when set, wall clock otherwise."""
        if self.start_time is not None:
            return Clock(start_time=self.start_time)
        return Clock()
