from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from mealgen.core.engine.stages import Stage
from mealgen.core.errors import InvalidConfiguration

# Reference timings
DEFAULT_TICK_INTERVAL_SECONDS = 0.1
DEFAULT_OVERRUN_GRACE_SECONDS = 3.0
DEFAULT_COMPLETION_DELAY_SECONDS = 1.5
DEFAULT_OVERRUN_DELAY_SECONDS = 2.0

StageLike = Union[Stage, Mapping[str, Any]]


# -----------------------
# Plan building blocks
# -----------------------

class StageSpec(BaseModel):
    id: str = Field(..., min_length=1, description="Unique short identifier")
    title: str = Field(..., description="Stage headline")
    description: str = Field(default="", description="One-line explanation shown under the title")
    duration_seconds: float = Field(..., gt=0, allow_inf_nan=False, description="Display duration of the stage")
    icon: str = Field(default="", description="Opaque display token")

    def to_stage(self) -> Stage:
        return Stage(
            id=self.id,
            title=self.title,
            description=self.description,
            duration_seconds=self.duration_seconds,
            icon=self.icon,
        )


class GenerationPlanSpec(BaseModel):
    """
    Canonical configuration of one generation run.

    - stages are ordered and non-empty, ids unique, durations > 0
    - total_duration_seconds defaults to the sum of stage durations
    - deterministic config hash (same plan => same fingerprint)
    """

    stages: list[StageSpec] = Field(..., min_length=1)

    tick_interval_seconds: float = Field(default=DEFAULT_TICK_INTERVAL_SECONDS, gt=0, allow_inf_nan=False)
    overrun_grace_seconds: float = Field(default=DEFAULT_OVERRUN_GRACE_SECONDS, ge=0, allow_inf_nan=False)
    completion_delay_seconds: float = Field(default=DEFAULT_COMPLETION_DELAY_SECONDS, ge=0, allow_inf_nan=False)
    overrun_delay_seconds: float = Field(default=DEFAULT_OVERRUN_DELAY_SECONDS, ge=0, allow_inf_nan=False)

    # Advertised budget; only differs from the stage sum when set explicitly
    total_duration_seconds: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)

    @model_validator(mode="after")
    def _validate_stage_ids(self) -> "GenerationPlanSpec":
        seen: set[str] = set()
        for s in self.stages:
            if s.id in seen:
                raise ValueError(f"duplicate stage id: {s.id!r}")
            seen.add(s.id)
        return self

    def to_plan(self) -> "GenerationPlan":
        stages = tuple(s.to_stage() for s in self.stages)
        stage_total = sum(s.duration_seconds for s in stages)
        total = self.total_duration_seconds if self.total_duration_seconds is not None else stage_total
        return GenerationPlan(
            stages=stages,
            tick_interval_seconds=self.tick_interval_seconds,
            total_duration_seconds=total,
            overrun_grace_seconds=self.overrun_grace_seconds,
            completion_delay_seconds=self.completion_delay_seconds,
            overrun_delay_seconds=self.overrun_delay_seconds,
        )

    def config_hash(self) -> str:
        blob = json.dumps(self.model_dump(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class GenerationPlan:
    """
    Validated, immutable configuration consumed by advance() and the engine.
    """

    stages: tuple[Stage, ...]
    tick_interval_seconds: float
    total_duration_seconds: float
    overrun_grace_seconds: float = DEFAULT_OVERRUN_GRACE_SECONDS
    completion_delay_seconds: float = DEFAULT_COMPLETION_DELAY_SECONDS
    overrun_delay_seconds: float = DEFAULT_OVERRUN_DELAY_SECONDS

    @property
    def stage_count(self) -> int:
        return len(self.stages)

    @property
    def last_stage_index(self) -> int:
        return len(self.stages) - 1

    @property
    def stage_duration_total(self) -> float:
        return sum(s.duration_seconds for s in self.stages)

    @property
    def budget_matches_stages(self) -> bool:
        return abs(self.stage_duration_total - self.total_duration_seconds) < 1e-9

    @property
    def overrun_after_seconds(self) -> float:
        return self.total_duration_seconds + self.overrun_grace_seconds


def _stage_payload(stage: StageLike) -> Mapping[str, Any]:
    if isinstance(stage, Stage):
        return asdict(stage)
    return stage


def build_plan(
    stages: Iterable[StageLike],
    *,
    tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
    overrun_grace_seconds: float = DEFAULT_OVERRUN_GRACE_SECONDS,
    completion_delay_seconds: float = DEFAULT_COMPLETION_DELAY_SECONDS,
    overrun_delay_seconds: float = DEFAULT_OVERRUN_DELAY_SECONDS,
    total_duration_seconds: float | None = None,
) -> tuple[GenerationPlan, GenerationPlanSpec]:
    """
    Validate raw configuration into a GenerationPlan.

    Raises InvalidConfiguration (never pydantic's ValidationError).
    """
    try:
        spec = GenerationPlanSpec.model_validate(
            {
                "stages": [_stage_payload(s) for s in stages],
                "tick_interval_seconds": tick_interval_seconds,
                "overrun_grace_seconds": overrun_grace_seconds,
                "completion_delay_seconds": completion_delay_seconds,
                "overrun_delay_seconds": overrun_delay_seconds,
                "total_duration_seconds": total_duration_seconds,
            }
        )
    except ValidationError as exc:
        raise InvalidConfiguration(_describe(exc)) from exc
    except TypeError as exc:
        # stages was not iterable / entries not mappings
        raise InvalidConfiguration(str(exc)) from exc

    return spec.to_plan(), spec


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "invalid generation plan: " + "; ".join(parts)
