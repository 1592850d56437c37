"""
Canonical report schema: the only shape the report renderer consumes.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from hostcare.schema.detection import DetectionRecord
from hostcare.schema.session import TaskResult


class ModuleStatus(StrEnum):
    success = "success"
    warning = "warning"
    failed = "failed"
    degraded = "degraded"
    dry_run = "dry_run"


class ActionRecord(BaseModel):
    target: str
    outcome: str
    timestamp_ms: int


class NormalizedModuleReport(BaseModel):
    """Per-task canonical report."""

    task_name: str
    status: ModuleStatus
    summary: TaskResult
    detections: list[DetectionRecord] = Field(default_factory=list)
    actions: list[ActionRecord] = Field(default_factory=list)
    degraded: bool = False
    degraded_reasons: list[str] = Field(default_factory=list)


class ReportTotals(BaseModel):
    tasks: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    items_detected: int = 0
    items_processed: int = 0
    items_failed: int = 0


class SessionReport(BaseModel):
    """Envelope written to ``reports/<session_id>.json``."""

    session_id: str
    hostname: str = ""
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    start_time: datetime | None = None
    end_time: datetime | None = None
    dry_run: bool = False
    totals: ReportTotals = Field(default_factory=ReportTotals)
    modules: list[NormalizedModuleReport] = Field(default_factory=list)
