"\"\"\"Pydantic configuration schema for CLI YAML input.\"\"\""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ApiConfig(BaseModel):
    base_url: str = "http://127.0.0.1:8000/api"
    timeout: float = Field(default=10.0, gt=0)
    token: str | None = None

    model_config = ConfigDict(extra="forbid")


class TimerConfig(BaseModel):
    duration_seconds: int = Field(default=600, gt=0)

    model_config = ConfigDict(extra="forbid")


class FlowConfig(BaseModel):
    submit_failure_delay: float = Field(default=2.0, ge=0)
    complete_notify_delay: float = Field(default=3.0, ge=0)
    option_resolution: Literal["identity", "value"] = "identity"

    model_config = ConfigDict(extra="forbid")


class ViolationConfig(BaseModel):
    max_violations: int = Field(default=5, ge=1)
    policy: Literal["annotate", "terminate"] = "annotate"

    model_config = ConfigDict(extra="forbid")


class SubmissionConfig(BaseModel):
    retry_attempts: int = Field(default=3, ge=1)
    retry_wait_min: float = Field(default=1.0, ge=0)
    retry_wait_max: float = Field(default=10.0, ge=0)

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    api: ApiConfig = Field(default_factory=ApiConfig)
    timer: TimerConfig = Field(default_factory=TimerConfig)
    flow: FlowConfig = Field(default_factory=FlowConfig)
    violations: ViolationConfig = Field(default_factory=ViolationConfig)
    submission: SubmissionConfig = Field(default_factory=SubmissionConfig)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    return AppConfig.model_validate(raw)
