"""
Task catalog entry.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from hostcare.core.config import settings


class TaskDescriptor(BaseModel):
    """Static catalog entry, loaded once and never mutated."""

    name: str = Field(min_length=1)
    enabled: bool = True
    detector_ref: str = Field(min_length=1, validation_alias=AliasChoices("detector_ref", "detectorRef", "detector"))
    actor_ref: str | None = Field(default=None, validation_alias=AliasChoices("actor_ref", "actorRef", "actor"))
    timeout_seconds: float = Field(
        default_factory=lambda: settings.DEFAULT_TASK_TIMEOUT_SECONDS,
        gt=0,
        validation_alias=AliasChoices("timeout_seconds", "timeoutSeconds", "timeout"),
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")
