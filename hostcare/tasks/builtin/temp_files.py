"""Stale temporary files: detect by age, act by moving them to quarantine."""

from __future__ import annotations

import asyncio
import os
import shutil
import time
from datetime import UTC, datetime
from pathlib import Path

from ulid import ULID

from hostcare.core.config import settings
from hostcare.core.log import logger
from hostcare.core.storage import get_quarantine_dir
from hostcare.schema.detection import DetectionRecord
from hostcare.schema.ledger import OperationKind, UndoInstruction
from hostcare.tasks.contracts import ActContext, ActorOutcome, DetectContext
from hostcare.tasks.registry import actor, detector

__all__ = ("quarantine_temp_files", "scan_temp_files")


def _scan(roots: list[Path], max_age_days: int, exclude: Path) -> list[DetectionRecord]:
    cutoff = time.time() - max_age_days * 86400
    rule = f"age>{max_age_days}d"
    records: list[DetectionRecord] = []

    for root in roots:
        if not root.is_dir():
            logger.debug(f"temp_files: {root} is not a directory, skipping")
            continue
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            current = Path(dirpath)
            # never touch our own storage tree
            dirnames[:] = [d for d in dirnames if not (current / d).resolve().is_relative_to(exclude)]
            for filename in filenames:
                path = current / filename
                try:
                    st = path.lstat()
                except OSError:
                    continue
                if path.is_symlink() or st.st_mtime >= cutoff:
                    continue
                records.append(
                    DetectionRecord(
                        item_id=str(path),
                        category="temp_file",
                        display_name=filename,
                        matched_rule=rule,
                        metadata={
                            "size_bytes": st.st_size,
                            "modified_at": datetime.fromtimestamp(st.st_mtime, UTC).isoformat(),
                            "root": str(root),
                        },
                    )
                )
    return records


@detector("temp_files.scan")
async def scan_temp_files(ctx: DetectContext) -> list[DetectionRecord]:
    roots = [Path(d).expanduser() for d in settings.TEMP_CLEANUP_DIRS]
    return await asyncio.to_thread(_scan, roots, settings.TEMP_FILE_MAX_AGE_DAYS, ctx.paths.root.resolve())


def _move(source: Path, destination: Path) -> None:
    os.makedirs(destination.parent, exist_ok=True)
    shutil.move(str(source), str(destination))


@actor("temp_files.quarantine")
async def quarantine_temp_files(ctx: ActContext, items: list[DetectionRecord]) -> ActorOutcome:
    """Move each detected file into the session quarantine."""
    quarantine = get_quarantine_dir(ctx.paths, ctx.session_id) / ctx.task_name
    processed = 0
    failed = 0

    for item in items:
        source = Path(item.item_id)
        destination = quarantine / str(ULID()) / source.name
        entry = await ctx.record_change(
            str(source),
            previous_state="present",
            new_state=f"quarantined:{destination}",
            undo=UndoInstruction(
                operation_kind=OperationKind.restore_file,
                target=str(source),
                parameters={"quarantine_path": str(destination)},
            ),
        )
        try:
            await asyncio.to_thread(_move, source, destination)
        except OSError as exc:
            failed += 1
            await ctx.discard_change(entry, str(exc))
            await ctx.log_action(str(source), "failed", error=str(exc))
            logger.warning(f"temp_files: could not quarantine {source}: {exc}")
            continue

        await ctx.log_action(str(source), "quarantined", quarantine_path=str(destination))
        processed += 1

    return ActorOutcome(processed=processed, failed=failed)
