"""
Local disk layout for session artifacts.

    <root>/sessions/<session_id>/manifest.json
    <root>/sessions/<session_id>/manifest.complete
    <root>/sessions/<session_id>/changes.jsonl
    <root>/sessions/<session_id>/undo.jsonl
    <root>/sessions/<session_id>/tasks/<task_name>/detections.json
    <root>/sessions/<session_id>/tasks/<task_name>/actions.jsonl
    <root>/quarantine/<session_id>/...
    <root>/reports/<session_id>.json
"""

import json
import os
import re
import shutil
from hashlib import blake2s
from pathlib import Path
from typing import Any

import aiofiles

from hostcare.core.init_guard import PathSet

__all__ = (
    "append_jsonl",
    "delete_session_files",
    "get_actions_path",
    "get_detections_path",
    "get_quarantine_dir",
    "get_report_path",
    "get_session_dir",
    "get_task_dir",
    "read_jsonl",
    "write_json_atomic",
)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _safe_name(name: str) -> str:
    """
    Filesystem-safe directory name. Names that had to be rewritten get a short
    digest of the original, so "a/b" and "a_b" never share a directory.
    """
    cleaned = _UNSAFE_CHARS.sub("_", name).strip(".")
    if cleaned and cleaned == name:
        return cleaned
    digest = blake2s(name.encode(), digest_size=4).hexdigest()
    return f"{cleaned or '_'}-{digest}"


def get_session_dir(paths: PathSet, session_id: str) -> Path:
    return paths.sessions_dir / _safe_name(session_id)


def get_task_dir(paths: PathSet, session_id: str, task_name: str) -> Path:
    return get_session_dir(paths, session_id) / "tasks" / _safe_name(task_name)


def get_detections_path(paths: PathSet, session_id: str, task_name: str) -> Path:
    return get_task_dir(paths, session_id, task_name) / "detections.json"


def get_actions_path(paths: PathSet, session_id: str, task_name: str) -> Path:
    return get_task_dir(paths, session_id, task_name) / "actions.jsonl"


def get_quarantine_dir(paths: PathSet, session_id: str) -> Path:
    return paths.quarantine_dir / _safe_name(session_id)


def get_report_path(paths: PathSet, session_id: str) -> Path:
    return paths.reports_dir / f"{_safe_name(session_id)}.json"


async def write_json_atomic(path: Path, content: str) -> None:
    """Write *content* to a sibling temp file, then rename it over *path*."""
    os.makedirs(path.parent, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
        await f.write(content)
        await f.flush()
    os.replace(tmp_path, path)


async def append_jsonl(path: Path, record: dict[str, Any]) -> None:
    """Append one JSON line to *path*."""
    os.makedirs(path.parent, exist_ok=True)
    async with aiofiles.open(path, "a", encoding="utf-8") as f:
        await f.write(json.dumps(record, default=str) + "\n")


async def read_jsonl(path: Path) -> list[str]:
    """Return the non-empty raw lines of a JSONL file (empty list if missing)."""
    if not path.exists():
        return []
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        content = await f.read()
    return [line for line in content.splitlines() if line.strip()]


def delete_session_files(paths: PathSet, session_id: str) -> None:
    """Remove all files for a session, including its quarantine and report."""
    for d in (get_session_dir(paths, session_id), get_quarantine_dir(paths, session_id)):
        if d.exists():
            shutil.rmtree(d)
    report = get_report_path(paths, session_id)
    if report.exists():
        report.unlink()
