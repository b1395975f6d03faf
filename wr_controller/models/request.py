"""Caller-supplied run request: which workspace to drive and how."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from wr_common.errors import ConfigurationError


class RunOptions(BaseModel):
    """Policy for one apply or destroy drive."""

    manual_confirm: bool = Field(
        description="Wait for a human to confirm the plan instead of confirming it automatically"
    )
    retry: bool = Field(default=True, description="Retry the run when it errors")
    retry_attempts: int = Field(default=3, ge=0, description="Maximum number of retries")
    retry_backoff_min: int = Field(
        default=1, ge=0, description="Minimum wait before a retry, in milliseconds"
    )
    retry_backoff_max: int = Field(
        default=30, ge=0, description="Maximum wait before a retry, in milliseconds"
    )
    wait_for_run: bool = Field(
        default=True, description="Wait for the run to finish instead of returning right after creating it"
    )

    @model_validator(mode="after")
    def validate_backoff_window(self) -> "RunOptions":
        if self.retry_backoff_min > self.retry_backoff_max:
            raise ValueError(
                "RunOptions: 'retry_backoff_min' must not exceed 'retry_backoff_max'"
            )
        return self

    @property
    def auto_apply(self) -> bool:
        """Auto-apply flag sent on run creation.

        In wait mode the controller confirms the run itself, so the remote
        must never auto-apply.
        """
        return not self.wait_for_run and not self.manual_confirm


class RunRequest(BaseModel):
    """Target workspace plus the apply and destroy policies."""

    organization: Optional[str] = Field(default=None, description="Organization owning the workspace")
    workspace: Optional[str] = Field(default=None, description="Workspace name")
    workspace_id: Optional[str] = Field(
        default=None, description="Workspace ID, used instead of the organization/name lookup"
    )
    apply: Optional[RunOptions] = Field(default=None, description="Policy for apply runs")
    destroy: Optional[RunOptions] = Field(default=None, description="Policy for destroy runs")
    message: Optional[str] = Field(default=None, description="Message attached to created runs")

    @model_validator(mode="after")
    def validate_target(self) -> "RunRequest":
        if self.workspace_id:
            return self
        if not self.organization or not self.workspace:
            raise ValueError(
                "RunRequest: set 'workspace_id' or both 'organization' and 'workspace'"
            )
        return self

    def options_for(self, is_destroy: bool) -> RunOptions | None:
        return self.destroy if is_destroy else self.apply

    @classmethod
    def load(cls, filepath: Path) -> "RunRequest":
        """Load a request from a JSON or YAML file."""
        try:
            text = filepath.read_text()
        except OSError as exc:
            raise ConfigurationError(
                f"Cannot read request file {filepath}: {exc}",
                context={"path": filepath},
                cause=exc,
            ) from exc

        try:
            if filepath.suffix.lower() in {".yaml", ".yml"}:
                data = yaml.safe_load(text) or {}
                return cls.model_validate(data)
            return cls.model_validate_json(text)
        except (yaml.YAMLError, ValidationError) as exc:
            raise ConfigurationError(
                f"Invalid request file {filepath}: {exc}",
                context={"path": filepath},
                cause=exc,
            ) from exc
