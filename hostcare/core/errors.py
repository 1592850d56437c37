"""
Error taxonomy.

Only ``InitializationTimeout`` is allowed to abort a maintenance run. Every
other error is caught where it happens (per task, per report, per undo entry)
and turned into a structured result.
"""

__all__ = (
    "ArtifactNormalizationError",
    "CatalogError",
    "DryRunViolation",
    "HostcareError",
    "InitializationTimeout",
    "ManifestCorrupt",
    "ManifestError",
    "ManifestIncomplete",
    "SessionFinalizedError",
    "SessionNotFoundError",
    "TaskExecutionError",
    "TaskTimeout",
    "UndoExecutionError",
    "UnsafeUndoRejected",
)


class HostcareError(Exception):
    """Base class for every error raised by hostcare."""


class InitializationTimeout(HostcareError):
    """The initialization lock could not be acquired in time."""


class TaskTimeout(HostcareError):
    def __init__(self, task_name: str, phase: str, timeout: float):
        super().__init__(f"{task_name}: {phase} exceeded {timeout:g}s")
        self.task_name = task_name
        self.phase = phase
        self.timeout = timeout


class TaskExecutionError(HostcareError):
    def __init__(self, task_name: str, message: str):
        super().__init__(f"{task_name}: {message}")
        self.task_name = task_name


class DryRunViolation(TaskExecutionError):
    """A mutating call was attempted while the session is a dry run."""


class ArtifactNormalizationError(HostcareError):
    def __init__(self, task_name: str, reason: str):
        super().__init__(f"{task_name}: {reason}")
        self.task_name = task_name
        self.reason = reason


class UnsafeUndoRejected(HostcareError):
    def __init__(self, change_id: str, operation_kind: str, reason: str | None = None):
        message = f"change {change_id}: operation '{operation_kind}' is not allowed"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.change_id = change_id
        self.operation_kind = operation_kind
        self.reason = reason


class UndoExecutionError(HostcareError):
    """An allowed undo operation could not be carried out."""


class CatalogError(HostcareError):
    """The catalog file itself could not be read."""


class SessionNotFoundError(HostcareError):
    pass


class SessionFinalizedError(HostcareError):
    pass


class ManifestError(HostcareError):
    pass


class ManifestIncomplete(ManifestError):
    """Manifest exists without its completion marker."""


class ManifestCorrupt(ManifestError):
    """Manifest does not match its completion marker or cannot be parsed."""
