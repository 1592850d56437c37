"""
Best-effort rollback of a session's recorded changes.

Undo instructions are structured commands dispatched through
``UNDO_HANDLERS``. Nothing read from the ledger is ever executed as code or
passed to a shell. Kinds outside ``OperationKind`` are rejected, and so is any
instruction whose target is not the recorded change target or lies outside the
configured temp roots.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Callable

from hostcare.core.config import settings
from hostcare.core.errors import UndoExecutionError, UnsafeUndoRejected
from hostcare.core.init_guard import PathSet
from hostcare.core.log import logger
from hostcare.core.storage import append_jsonl
from hostcare.ledger.ledger import get_journal_path, load_entries, load_journal
from hostcare.schema.ledger import (
    TERMINAL_STATES,
    ChangeEntry,
    ChangeState,
    OperationKind,
    UndoInstruction,
    UndoJournalEntry,
    UndoOutcome,
    UndoSummary,
)

__all__ = ("UNDO_HANDLERS", "undo_all")

UndoHandler = Callable[[PathSet, UndoInstruction], str]


def _absolute_target(instruction: UndoInstruction) -> Path:
    target = Path(instruction.target)
    if not target.is_absolute():
        raise UndoExecutionError(f"target must be an absolute path: {instruction.target!r}")
    return target


def _restore_file(paths: PathSet, instruction: UndoInstruction) -> str:
    target = _absolute_target(instruction)
    raw_source = instruction.parameters.get("quarantine_path")
    if not raw_source:
        raise UndoExecutionError("restore_file requires a 'quarantine_path' parameter")

    source = Path(raw_source).resolve()
    if not source.is_relative_to(paths.quarantine_dir.resolve()):
        raise UndoExecutionError(f"{source} is outside the quarantine directory")
    if not source.exists():
        raise UndoExecutionError(f"quarantined copy {source} no longer exists")
    if target.exists():
        raise UndoExecutionError(f"{target} already exists, not overwriting")

    os.makedirs(target.parent, exist_ok=True)
    shutil.move(str(source), str(target))
    return f"restored {target}"


def _parse_mode(raw: object) -> int:
    if isinstance(raw, bool):
        raise UndoExecutionError(f"invalid file mode: {raw!r}")
    if isinstance(raw, int):
        mode = raw
    elif isinstance(raw, str):
        try:
            mode = int(raw.removeprefix("0o"), 8)
        except ValueError as exc:
            raise UndoExecutionError(f"invalid file mode: {raw!r}") from exc
    else:
        raise UndoExecutionError(f"invalid file mode: {raw!r}")
    if not 0 <= mode <= 0o7777:
        raise UndoExecutionError(f"file mode out of range: {oct(mode)}")
    return mode


def _create_directory(paths: PathSet, instruction: UndoInstruction) -> str:
    target = _absolute_target(instruction)
    if target.exists() and not target.is_dir():
        raise UndoExecutionError(f"{target} exists and is not a directory")
    os.makedirs(target, exist_ok=True)
    mode = instruction.parameters.get("mode")
    if mode is not None:
        os.chmod(target, _parse_mode(mode))
    return f"created {target}"


UNDO_HANDLERS: dict[OperationKind, UndoHandler] = {
    OperationKind.restore_file: _restore_file,
    OperationKind.create_directory: _create_directory,
}


def _cleanup_roots() -> list[Path]:
    return [Path(d).expanduser().resolve() for d in settings.TEMP_CLEANUP_DIRS]


def _resolve_handler(entry: ChangeEntry) -> UndoHandler:
    instruction = entry.undo_instruction
    kind = instruction.operation_kind
    try:
        operation = OperationKind(kind)
    except ValueError:
        raise UnsafeUndoRejected(entry.change_id, kind) from None
    handler = UNDO_HANDLERS.get(operation)
    if handler is None:
        raise UnsafeUndoRejected(entry.change_id, kind)

    if instruction.target != entry.target:
        raise UnsafeUndoRejected(
            entry.change_id, kind, reason=f"target {instruction.target!r} does not match change target {entry.target!r}"
        )
    target = Path(instruction.target)
    if not target.is_absolute():
        raise UnsafeUndoRejected(entry.change_id, kind, reason=f"target {instruction.target!r} is not absolute")
    resolved = target.resolve()
    if not any(resolved.is_relative_to(root) for root in _cleanup_roots()):
        raise UnsafeUndoRejected(entry.change_id, kind, reason=f"{resolved} is outside the cleanup roots")
    return handler


async def undo_all(session_id: str, paths: PathSet) -> UndoSummary:
    """
    Undo every recorded change of a session, most recent first.

    Each entry moves from ``recorded`` to ``undone`` or ``undo_failed``
    exactly once; entries already in a terminal state are skipped. A failing
    or rejected entry never stops the remaining ones.
    """
    entries, errors = await load_entries(paths, session_id)
    states = await load_journal(paths, session_id)
    journal_path = get_journal_path(paths, session_id)

    summary = UndoSummary(session_id=session_id)
    for error in errors:
        summary.failed += 1
        summary.outcomes.append(
            UndoOutcome(change_id="", state=ChangeState.undo_failed, detail=f"unreadable ledger entry ({error})")
        )

    logger.info(f"Session {session_id}: undoing {len(entries)} recorded changes")

    for entry in reversed(entries):
        if states.get(entry.change_id, ChangeState.recorded) in TERMINAL_STATES:
            summary.skipped += 1
            continue

        instruction = entry.undo_instruction
        try:
            handler = _resolve_handler(entry)
            detail = await asyncio.to_thread(handler, paths, instruction)
            state = ChangeState.undone
            summary.succeeded += 1
            logger.info(f"Session {session_id}: undid {entry.change_id} ({detail})")
        except UnsafeUndoRejected as exc:
            state = ChangeState.undo_failed
            detail = str(exc)
            summary.failed += 1
            logger.warning(f"Session {session_id}: rejected undo — {exc}")
        except Exception as exc:
            state = ChangeState.undo_failed
            detail = f"{type(exc).__name__}: {exc}"
            summary.failed += 1
            logger.error(f"Session {session_id}: undo of {entry.change_id} failed — {detail}")

        states[entry.change_id] = state
        await append_jsonl(
            journal_path,
            UndoJournalEntry(change_id=entry.change_id, state=state, detail=detail).model_dump(mode="json"),
        )
        summary.outcomes.append(
            UndoOutcome(
                change_id=entry.change_id,
                task_name=entry.task_name,
                operation_kind=instruction.operation_kind,
                target=instruction.target,
                state=state,
                detail=detail,
            )
        )

    logger.info(
        f"Session {session_id}: undo complete — "
        f"{summary.succeeded} succeeded, {summary.failed} failed, {summary.skipped} skipped"
    )
    return summary
