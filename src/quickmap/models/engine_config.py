from __future__ import annotations

import os
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from quickmap.models.map_options import MapOptions, MappingStrategy

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


def _env_flag(name: str, default: str) -> str:
    val = os.getenv(name)
    return val if val not in (None, "") else default


class EngineConfig(BaseModel):
    """Engine-wide defaults; every MapOptions field not given per call comes from here."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_strategy: MappingStrategy = "compiled"
    timing_diagnostics: bool = False
    ignore_missing_target: bool = True
    skip_nulls: bool = False
    log_level: Optional[LogLevel] = None  # None leaves logging configuration to the application

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v

    def default_options(self) -> MapOptions:
        return MapOptions(
            skip_nulls=self.skip_nulls,
            ignore_missing_target=self.ignore_missing_target,
            timing_diagnostics=self.timing_diagnostics,
            strategy=self.default_strategy,
        )

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build a config from environment variables.

        QUICKMAP_STRATEGY: "compiled" | "interpreted" (default: "compiled")
        QUICKMAP_TIMING: "true" | "false" (default: "false")
        QUICKMAP_IGNORE_MISSING_TARGET: "true" | "false" (default: "true")
        QUICKMAP_SKIP_NULLS: "true" | "false" (default: "false")
        QUICKMAP_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: unset)
        """
        return cls(
            default_strategy=_env_flag("QUICKMAP_STRATEGY", "compiled").strip().lower(),
            timing_diagnostics=_env_flag("QUICKMAP_TIMING", "false").lower() == "true",
            ignore_missing_target=_env_flag("QUICKMAP_IGNORE_MISSING_TARGET", "true").lower() == "true",
            skip_nulls=_env_flag("QUICKMAP_SKIP_NULLS", "false").lower() == "true",
            log_level=os.getenv("QUICKMAP_LOG_LEVEL") or None,
        )
