"""
Write-once session manifest with a completion marker.

The manifest is written to a temp file and renamed into place, then the
marker (blake2s digest + size of the manifest bytes) is written the same way.
Readers trust a manifest only when the marker is present and matches; a
missing marker means the write never completed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from hashlib import blake2s
from pathlib import Path

import aiofiles
from pydantic import ValidationError

from hostcare.core.errors import ManifestCorrupt, ManifestError, ManifestIncomplete, SessionNotFoundError
from hostcare.core.init_guard import PathSet
from hostcare.core.storage import get_session_dir, write_json_atomic
from hostcare.schema.session import ManifestMarker, SessionManifest

__all__ = (
    "get_manifest_path",
    "get_marker_path",
    "load_manifest",
    "write_manifest",
)


def get_manifest_path(paths: PathSet, session_id: str) -> Path:
    return get_session_dir(paths, session_id) / "manifest.json"


def get_marker_path(paths: PathSet, session_id: str) -> Path:
    return get_session_dir(paths, session_id) / "manifest.complete"


def _digest(data: bytes) -> str:
    return blake2s(data).hexdigest()


async def write_manifest(paths: PathSet, manifest: SessionManifest) -> Path:
    """Persist *manifest*. Refuses to replace an existing manifest."""
    manifest_path = get_manifest_path(paths, manifest.session_id)
    marker_path = get_marker_path(paths, manifest.session_id)
    if manifest_path.exists() or marker_path.exists():
        raise ManifestError(f"Manifest for session {manifest.session_id} already exists")

    content = manifest.model_dump_json(indent=2)
    data = content.encode("utf-8")
    await write_json_atomic(manifest_path, content)

    marker = ManifestMarker(digest=_digest(data), size=len(data), written_at=datetime.now(UTC))
    await write_json_atomic(marker_path, marker.model_dump_json(indent=2))
    return manifest_path


async def load_manifest(paths: PathSet, session_id: str) -> SessionManifest:
    """
    Read and verify a session manifest.

    Raises ``SessionNotFoundError`` if nothing was ever written,
    ``ManifestIncomplete`` if the completion marker is missing and
    ``ManifestCorrupt`` if the bytes do not match the marker or do not parse.
    """
    manifest_path = get_manifest_path(paths, session_id)
    marker_path = get_marker_path(paths, session_id)

    if not manifest_path.exists():
        if marker_path.exists():
            raise ManifestCorrupt(f"Session {session_id}: completion marker present but manifest missing")
        if get_session_dir(paths, session_id).exists():
            raise ManifestIncomplete(f"Session {session_id}: never finalized")
        raise SessionNotFoundError(f"Session {session_id} not found")

    if not marker_path.exists():
        raise ManifestIncomplete(f"Session {session_id}: manifest has no completion marker")

    async with aiofiles.open(manifest_path, "rb") as f:
        data = await f.read()
    async with aiofiles.open(marker_path, "r", encoding="utf-8") as f:
        marker_raw = await f.read()

    try:
        marker = ManifestMarker.model_validate_json(marker_raw)
    except ValidationError as exc:
        raise ManifestCorrupt(f"Session {session_id}: unreadable completion marker") from exc

    if marker.size != len(data) or marker.digest != _digest(data):
        raise ManifestCorrupt(f"Session {session_id}: manifest does not match its completion marker")

    try:
        manifest = SessionManifest.model_validate_json(data)
    except ValidationError as exc:
        raise ManifestCorrupt(f"Session {session_id}: manifest failed validation") from exc

    if manifest.session_id != session_id:
        raise ManifestCorrupt(f"Session {session_id}: manifest belongs to {manifest.session_id}")
    return manifest
