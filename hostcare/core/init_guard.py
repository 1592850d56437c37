"""
One-time discovery of storage paths and host identity.

Task modules may call ``ensure_initialized`` from several threads while the
process starts up. The discovery work runs exactly once; every caller gets the
same ``PathSet``.
"""

from __future__ import annotations

import getpass
import os
import socket
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ulid import ULID

from hostcare.core.config import settings
from hostcare.core.errors import InitializationTimeout
from hostcare.core.log import logger

__all__ = (
    "PathSet",
    "ensure_initialized",
    "reset_initialization",
)


@dataclass(frozen=True)
class PathSet:
    root: Path
    sessions_dir: Path
    reports_dir: Path
    quarantine_dir: Path
    hostname: str
    username: str
    pid: int
    exec_id: str
    initialized_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class _InitState:
    paths: PathSet | None = None
    discoveries: int = 0


_STATE = _InitState()

_NAMED_LOCKS: dict[str, threading.Lock] = {}
_NAMED_LOCKS_GUARD = threading.Lock()

_INIT_LOCK_NAME = "hostcare.init"


def _named_lock(name: str) -> threading.Lock:
    with _NAMED_LOCKS_GUARD:
        lock = _NAMED_LOCKS.get(name)
        if lock is None:
            lock = _NAMED_LOCKS[name] = threading.Lock()
        return lock


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "unknown"


def _discover(storage_dir: str) -> PathSet:
    root = Path(storage_dir).expanduser().resolve()
    sessions_dir = root / "sessions"
    reports_dir = root / "reports"
    quarantine_dir = root / "quarantine"
    for d in (root, sessions_dir, reports_dir, quarantine_dir):
        os.makedirs(d, exist_ok=True)

    paths = PathSet(
        root=root,
        sessions_dir=sessions_dir,
        reports_dir=reports_dir,
        quarantine_dir=quarantine_dir,
        hostname=socket.gethostname(),
        username=_current_user(),
        pid=os.getpid(),
        exec_id=str(ULID()),
    )
    logger.info(f"Initialized storage at {root} (host={paths.hostname}, exec_id={paths.exec_id})")
    return paths


def ensure_initialized(timeout: float | None = None) -> PathSet:
    """
    Return the process-wide ``PathSet``, discovering it on first use.

    Raises ``InitializationTimeout`` if the init lock is not acquired within
    *timeout* seconds (``INIT_LOCK_TIMEOUT_SECONDS`` by default).
    """
    if _STATE.paths is not None:
        return _STATE.paths

    wait = settings.INIT_LOCK_TIMEOUT_SECONDS if timeout is None else timeout
    lock = _named_lock(_INIT_LOCK_NAME)
    if not lock.acquire(timeout=wait):
        logger.error(f"Could not acquire '{_INIT_LOCK_NAME}' within {wait:g}s")
        raise InitializationTimeout(f"initialization lock not acquired within {wait:g}s")

    try:
        if _STATE.paths is None:
            _STATE.paths = _discover(settings.STORAGE_DIR)
            _STATE.discoveries += 1
        return _STATE.paths
    finally:
        lock.release()


def reset_initialization() -> None:
    """Forget the discovered ``PathSet`` so the next call rediscovers it."""
    lock = _named_lock(_INIT_LOCK_NAME)
    with lock:
        _STATE.paths = None
        _STATE.discoveries = 0
