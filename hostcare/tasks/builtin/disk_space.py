"""Audit-only: volumes running low on free space."""

from __future__ import annotations

import asyncio
import shutil

from hostcare.core.config import settings
from hostcare.core.log import logger
from hostcare.schema.detection import DetectionRecord
from hostcare.tasks.contracts import DetectContext
from hostcare.tasks.registry import detector

__all__ = ("check_disk_space",)


def _check(paths: list[str], warn_percent: float) -> list[DetectionRecord]:
    records: list[DetectionRecord] = []
    for path in paths:
        try:
            usage = shutil.disk_usage(path)
        except OSError as exc:
            logger.warning(f"disk_space: cannot stat {path}: {exc}")
            continue
        if usage.total == 0:
            continue
        free_percent = usage.free / usage.total * 100
        if free_percent >= warn_percent:
            continue
        records.append(
            DetectionRecord(
                item_id=path,
                category="low_disk_space",
                display_name=f"{path} ({free_percent:.1f}% free)",
                matched_rule=f"free<{warn_percent:g}%",
                metadata={
                    "total_bytes": usage.total,
                    "used_bytes": usage.used,
                    "free_bytes": usage.free,
                    "free_percent": round(free_percent, 2),
                },
            )
        )
    return records


@detector("disk_space.check")
async def check_disk_space(ctx: DetectContext) -> list[DetectionRecord]:
    return await asyncio.to_thread(_check, list(settings.DISK_CHECK_PATHS), settings.DISK_FREE_WARN_PERCENT)
