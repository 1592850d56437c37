"""Empty directories left behind under the temp roots."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from hostcare.core.config import settings
from hostcare.schema.detection import DetectionRecord
from hostcare.schema.ledger import OperationKind, UndoInstruction
from hostcare.tasks.contracts import ActContext, ActorOutcome, DetectContext
from hostcare.tasks.registry import actor, detector

__all__ = ("remove_empty_dirs", "scan_empty_dirs")


def _scan(roots: list[Path], exclude: Path) -> list[DetectionRecord]:
    records: list[DetectionRecord] = []
    for root in roots:
        if not root.is_dir():
            continue
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            current = Path(dirpath)
            has_entries = bool(dirnames or filenames)
            dirnames[:] = [d for d in dirnames if not (current / d).resolve().is_relative_to(exclude)]
            if current == root or has_entries:
                continue
            records.append(
                DetectionRecord(
                    item_id=str(current),
                    category="empty_directory",
                    display_name=current.name,
                    matched_rule="empty",
                    metadata={"mode": oct(current.stat().st_mode & 0o7777), "root": str(root)},
                )
            )
    return records


@detector("empty_dirs.scan")
async def scan_empty_dirs(ctx: DetectContext) -> list[DetectionRecord]:
    roots = [Path(d).expanduser() for d in settings.TEMP_CLEANUP_DIRS]
    return await asyncio.to_thread(_scan, roots, ctx.paths.root.resolve())


@actor("empty_dirs.remove")
async def remove_empty_dirs(ctx: ActContext, items: list[DetectionRecord]) -> ActorOutcome:
    processed = 0
    failed = 0
    for item in items:
        target = Path(item.item_id)
        parameters = {"mode": item.metadata["mode"]} if "mode" in item.metadata else {}
        entry = await ctx.record_change(
            str(target),
            previous_state="empty directory",
            new_state="absent",
            undo=UndoInstruction(
                operation_kind=OperationKind.create_directory,
                target=str(target),
                parameters=parameters,
            ),
        )
        try:
            await asyncio.to_thread(target.rmdir)
        except OSError as exc:
            failed += 1
            await ctx.discard_change(entry, str(exc))
            await ctx.log_action(str(target), "failed", error=str(exc))
            continue

        await ctx.log_action(str(target), "removed")
        processed += 1

    return ActorOutcome(processed=processed, failed=failed)
