"""Maintenance orchestration: sequential detect then act over the task catalog."""

from hostcare.orchestration.coordinator import run_session
from hostcare.orchestration.executor import execute_task

__all__ = (
    "execute_task",
    "run_session",
)
