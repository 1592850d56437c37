"""
Change ledger models: reversible operations and their undo instructions.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from ulid import ULID


class OperationKind(StrEnum):
    """Allow-list of undo operations."""

    restore_file = "restore_file"
    create_directory = "create_directory"


class ChangeState(StrEnum):
    recorded = "recorded"
    # the actor recorded the change but the mutation itself failed
    not_applied = "not_applied"
    undone = "undone"
    undo_failed = "undo_failed"


TERMINAL_STATES = frozenset({ChangeState.not_applied, ChangeState.undone, ChangeState.undo_failed})


class UndoInstruction(BaseModel):
    """
    Structured rollback command.

    ``operation_kind`` is kept as a plain string so that a ledger line with an
    unknown kind still loads; it is checked against ``OperationKind`` right
    before execution.
    """

    operation_kind: str
    target: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class ChangeEntry(BaseModel):
    change_id: str = Field(default_factory=lambda: str(ULID()))
    session_id: str
    task_name: str
    target: str
    previous_state: str | None = None
    new_state: str | None = None
    undo_instruction: UndoInstruction
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class UndoJournalEntry(BaseModel):
    change_id: str
    state: ChangeState
    detail: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class UndoOutcome(BaseModel):
    change_id: str
    task_name: str = ""
    operation_kind: str = ""
    target: str = ""
    state: ChangeState
    detail: str = ""


class UndoSummary(BaseModel):
    session_id: str
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: list[UndoOutcome] = Field(default_factory=list)
