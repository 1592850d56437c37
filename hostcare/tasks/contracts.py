"""
Detector / actor contracts and the contexts they receive.

A detector only gets a ``DetectContext``: it has no handle on the ledger or
the action log, so it cannot record mutations. An actor gets an
``ActContext`` through which every change and action is recorded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Awaitable, Callable

from hostcare.core.errors import DryRunViolation
from hostcare.core.init_guard import PathSet
from hostcare.core.storage import append_jsonl
from hostcare.ledger.ledger import ChangeLedger, get_journal_path
from hostcare.schema.detection import DetectionRecord
from hostcare.schema.ledger import ChangeEntry, ChangeState, UndoInstruction, UndoJournalEntry

__all__ = (
    "ActContext",
    "ActFunc",
    "ActorOutcome",
    "DetectContext",
    "DetectFunc",
)


@dataclass(frozen=True)
class DetectContext:
    session_id: str
    task_name: str
    paths: PathSet
    dry_run: bool


@dataclass(frozen=True)
class ActorOutcome:
    """What an actor reports back about the items it was handed."""

    processed: int = 0
    failed: int = 0
    success: bool = True
    error_message: str | None = None


class ActContext:
    def __init__(
        self,
        *,
        session_id: str,
        task_name: str,
        paths: PathSet,
        dry_run: bool,
        ledger: ChangeLedger,
        actions_path: Path,
    ):
        self.session_id = session_id
        self.task_name = task_name
        self.paths = paths
        self.dry_run = dry_run
        self.ledger = ledger
        self.actions_path = actions_path
        self.changes_recorded = 0

    async def record_change(
        self,
        target: str,
        *,
        undo: UndoInstruction,
        previous_state: str | None = None,
        new_state: str | None = None,
    ) -> ChangeEntry:
        """
        Append a reversible change to the session ledger.

        Call this before the mutation it describes, so an interrupted actor
        never leaves an unrecorded change behind.
        """
        if self.dry_run:
            raise DryRunViolation(self.task_name, f"attempted to record a change to {target} during a dry run")

        entry = ChangeEntry(
            session_id=self.session_id,
            task_name=self.task_name,
            target=target,
            previous_state=previous_state,
            new_state=new_state,
            undo_instruction=undo,
        )
        await self.ledger.append(entry)
        self.changes_recorded += 1
        return entry

    async def discard_change(self, entry: ChangeEntry, reason: str) -> None:
        """
        Mark a recorded change as never applied.

        Actors record a change before mutating anything; when the mutation then
        fails, this keeps a later undo from acting on it.
        """
        record = UndoJournalEntry(change_id=entry.change_id, state=ChangeState.not_applied, detail=reason)
        await append_jsonl(get_journal_path(self.paths, self.session_id), record.model_dump(mode="json"))
        self.changes_recorded -= 1

    async def log_action(self, target: str, outcome: str, **detail: Any) -> None:
        """Append one line to this task's action log."""
        record: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "task": self.task_name,
            "target": target,
            "outcome": outcome,
        }
        if detail:
            record["detail"] = detail
        await append_jsonl(self.actions_path, record)


DetectFunc = Callable[[DetectContext], Awaitable[list[DetectionRecord]]]
ActFunc = Callable[[ActContext, list[DetectionRecord]], Awaitable[ActorOutcome]]
