"""
Raw artifact loaders.

Detectors and actors do not agree on one output shape. These loaders accept
the known variations and reshape them into ``DetectionRecord`` and
``ActionRecord``; anything they cannot make sense of is reported back as a
problem string rather than raised.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiofiles
from pydantic import ValidationError

from hostcare.core.errors import ArtifactNormalizationError
from hostcare.core.storage import read_jsonl
from hostcare.schema.detection import DetectionRecord
from hostcare.schema.report import ActionRecord

__all__ = ("load_actions", "load_detections")

_TARGET_KEYS = ("target", "item", "path", "item_id")
_OUTCOME_KEYS = ("outcome", "status", "result")


async def load_detections(path: Path, task_name: str) -> tuple[list[DetectionRecord], list[str]]:
    """
    Load a detection artifact.

    Raises ``ArtifactNormalizationError`` when the file is missing or is not
    usable at all. Individual bad items are dropped and listed in the
    returned problems.
    """
    if not path.exists():
        raise ArtifactNormalizationError(task_name, "detection artifact missing")

    try:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            raw = json.loads(await f.read())
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ArtifactNormalizationError(task_name, f"detection artifact unreadable ({type(exc).__name__})") from exc

    if isinstance(raw, dict):
        raw_items = raw.get("items", raw.get("detections"))
    else:
        raw_items = raw
    if not isinstance(raw_items, list):
        raise ArtifactNormalizationError(task_name, "detection artifact has no item list")

    records: list[DetectionRecord] = []
    problems: list[str] = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            problems.append(f"detection #{index} is not an object")
            continue
        try:
            records.append(DetectionRecord.model_validate(item))
        except ValidationError as exc:
            fields = ", ".join(".".join(map(str, e["loc"])) or "?" for e in exc.errors())
            problems.append(f"detection #{index} invalid ({fields})")

    if isinstance(raw, dict) and isinstance(raw.get("count"), int) and raw["count"] != len(raw_items):
        problems.append(f"detection artifact declares {raw['count']} items but holds {len(raw_items)}")

    return records, problems


def _first(data: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _timestamp_ms(data: dict[str, Any]) -> int | None:
    if isinstance(data.get("timestamp_ms"), int):
        return data["timestamp_ms"]

    value = data.get("timestamp", data.get("time"))
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # epoch seconds
        return int(value * 1000)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return int(parsed.timestamp() * 1000)
    return None


def _parse_action(data: Any) -> ActionRecord | None:
    if not isinstance(data, dict):
        return None
    target = _first(data, _TARGET_KEYS)
    outcome = _first(data, _OUTCOME_KEYS)
    timestamp_ms = _timestamp_ms(data)
    if target is None or outcome is None or timestamp_ms is None:
        return None
    return ActionRecord(target=str(target), outcome=str(outcome).lower(), timestamp_ms=timestamp_ms)


async def load_actions(path: Path) -> tuple[list[ActionRecord], list[str]]:
    """Load an action log (JSON lines). A missing log is an empty log."""
    actions: list[ActionRecord] = []
    problems: list[str] = []
    try:
        lines = await read_jsonl(path)
    except (OSError, UnicodeDecodeError) as exc:
        return actions, [f"action log unreadable ({type(exc).__name__})"]

    for lineno, line in enumerate(lines, start=1):
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            problems.append(f"action log line {lineno} is not JSON")
            continue
        action = _parse_action(data)
        if action is None:
            problems.append(f"action log line {lineno} lacks target, outcome or timestamp")
            continue
        actions.append(action)

    return actions, problems
