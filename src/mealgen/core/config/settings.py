from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from mealgen.core.engine.stages import StageProfile


class AppSettings(BaseSettings):
    """
    Global application-level configuration.

    Single source of truth for:
    - environment selection
    - logging behavior
    - default generation timings (reference values)
    - optional event journal location
    """

    model_config = SettingsConfigDict(
        env_prefix="MEALGEN_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"
    json_logs: bool = True

    # ---- Generation timings ------------------------------------------

    stage_profile: StageProfile = "meal_modal"

    tick_interval_seconds: float = Field(default=0.1, gt=0, description="Simulation resolution")
    overrun_grace_seconds: float = Field(default=3.0, ge=0, description="Slack past the budget before overrun")
    completion_delay_seconds: float = Field(default=1.5, ge=0, description="Completion banner time before resolving")
    overrun_delay_seconds: float = Field(default=2.0, ge=0, description="Overrun banner time before resolving")

    # ---- Journal -----------------------------------------------------

    # When set, every generation session appends its events to <journal_dir>/<generation_id>.jsonl
    journal_dir: Optional[Path] = Field(default=None, description="Directory for event journals")


# Singleton settings object
settings = AppSettings()
