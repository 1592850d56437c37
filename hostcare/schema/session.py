"""
Session and task result models.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TaskResult(BaseModel):
    """Outcome of one task's execution. Never mutated after creation."""

    task_name: str
    success: bool
    items_detected: int = Field(default=0, ge=0)
    items_processed: int = Field(default=0, ge=0)
    items_failed: int = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)
    dry_run: bool = False
    error_message: str | None = None
    artifact_path: str = ""

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_counts(self) -> "TaskResult":
        if self.dry_run:
            if self.items_processed != 0:
                raise ValueError("dry-run results cannot report processed items")
        elif self.items_processed + self.items_failed > self.items_detected:
            raise ValueError(
                f"processed ({self.items_processed}) + failed ({self.items_failed}) "
                f"exceeds detected ({self.items_detected})"
            )
        return self


class Session(BaseModel):
    """One maintenance run."""

    session_id: str
    hostname: str = ""
    start_time: datetime
    end_time: datetime | None = None
    dry_run: bool = False
    task_results: list[TaskResult] = Field(default_factory=list)

    @property
    def finalized(self) -> bool:
        return self.end_time is not None


class SessionManifest(BaseModel):
    """Durable, write-once record of a finalized session."""

    format_version: int = 1
    session_id: str
    hostname: str = ""
    start_time: datetime
    end_time: datetime
    dry_run: bool
    task_results: list[TaskResult]

    model_config = ConfigDict(frozen=True)


class ManifestMarker(BaseModel):
    """Completion marker written after the manifest is fully on disk."""

    digest: str
    size: int
    written_at: datetime


class SessionSummary(BaseModel):
    """Short listing entry for a session directory."""

    session_id: str
    complete: bool
    start_time: datetime | None = None
    end_time: datetime | None = None
    dry_run: bool | None = None
    task_count: int = 0
    failed_tasks: int = 0
    error: str | None = None
