"""
Append-only change ledger, one JSONL file per session.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from hostcare.core.init_guard import PathSet
from hostcare.core.log import logger
from hostcare.core.storage import append_jsonl, get_session_dir, read_jsonl
from hostcare.schema.ledger import ChangeEntry, ChangeState, UndoJournalEntry

__all__ = (
    "ChangeLedger",
    "get_journal_path",
    "get_ledger_path",
    "load_entries",
    "load_journal",
)


def get_ledger_path(paths: PathSet, session_id: str) -> Path:
    return get_session_dir(paths, session_id) / "changes.jsonl"


def get_journal_path(paths: PathSet, session_id: str) -> Path:
    return get_session_dir(paths, session_id) / "undo.jsonl"


class ChangeLedger:
    """Records reversible operations for one session."""

    def __init__(self, paths: PathSet, session_id: str):
        self.paths = paths
        self.session_id = session_id
        self.path = get_ledger_path(paths, session_id)
        self._entries: list[ChangeEntry] = []

    async def append(self, entry: ChangeEntry) -> None:
        if entry.session_id != self.session_id:
            raise ValueError(
                f"change {entry.change_id} belongs to session {entry.session_id}, not {self.session_id}"
            )
        await append_jsonl(self.path, entry.model_dump(mode="json"))
        self._entries.append(entry)
        logger.debug(
            f"Session {self.session_id}: recorded change {entry.change_id} "
            f"({entry.undo_instruction.operation_kind} {entry.target})"
        )

    def entries(self) -> list[ChangeEntry]:
        """Entries appended through this instance, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


async def load_entries(paths: PathSet, session_id: str) -> tuple[list[ChangeEntry], list[str]]:
    """
    Read the session ledger from disk, oldest first.

    Returns (entries, errors) where ``errors`` describes every line that could
    not be parsed into a ``ChangeEntry``.
    """
    entries: list[ChangeEntry] = []
    errors: list[str] = []
    lines = await read_jsonl(get_ledger_path(paths, session_id))
    for lineno, line in enumerate(lines, start=1):
        try:
            entry = ChangeEntry.model_validate(json.loads(line))
        except (json.JSONDecodeError, ValidationError) as exc:
            errors.append(f"line {lineno}: {type(exc).__name__}")
            logger.warning(f"Session {session_id}: unreadable ledger line {lineno}: {exc}")
            continue
        if entry.session_id != session_id:
            errors.append(f"line {lineno}: foreign session {entry.session_id}")
            logger.warning(f"Session {session_id}: ledger line {lineno} belongs to {entry.session_id}")
            continue
        entries.append(entry)
    return entries, errors


async def load_journal(paths: PathSet, session_id: str) -> dict[str, ChangeState]:
    """Latest known state per change id, from the undo journal."""
    states: dict[str, ChangeState] = {}
    for line in await read_jsonl(get_journal_path(paths, session_id)):
        try:
            record = UndoJournalEntry.model_validate(json.loads(line))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(f"Session {session_id}: skipping unreadable undo journal line: {exc}")
            continue
        states[record.change_id] = record.state
    return states
