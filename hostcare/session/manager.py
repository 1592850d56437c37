"""
Session manager: collects task results and finalizes sessions.

Results are kept in memory in arrival order while the session runs. On
finalize the session is stamped with its end time and written once as a
manifest; after that the session accepts no more results.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime, timedelta

from ulid import ULID

from hostcare.core.errors import ManifestError, SessionFinalizedError, SessionNotFoundError
from hostcare.core.init_guard import PathSet
from hostcare.core.log import logger
from hostcare.core.storage import delete_session_files, get_session_dir
from hostcare.schema.session import Session, SessionManifest, SessionSummary, TaskResult
from hostcare.session.manifest import load_manifest, write_manifest

__all__ = (
    "SessionManager",
    "list_sessions",
    "prune_sessions",
)


class SessionManager:
    """Owns the sessions of one process."""

    def __init__(self, paths: PathSet):
        self.paths = paths
        self._active: dict[str, Session] = {}
        self._finalized: dict[str, Session] = {}

    def start_session(self, *, dry_run: bool = False) -> Session:
        session = Session(
            session_id=str(ULID()),
            hostname=self.paths.hostname,
            start_time=datetime.now(UTC),
            dry_run=dry_run,
        )
        os.makedirs(get_session_dir(self.paths, session.session_id), exist_ok=True)
        self._active[session.session_id] = session
        logger.info(f"Session {session.session_id}: started (dry_run={dry_run})")
        return session.model_copy(deep=True)

    def _get_active(self, session_id: str) -> Session:
        session = self._active.get(session_id)
        if session is not None:
            return session
        if session_id in self._finalized:
            raise SessionFinalizedError(f"Session {session_id} is already finalized")
        raise SessionNotFoundError(f"Session {session_id} is not active")

    def record_result(self, session_id: str, result: TaskResult) -> None:
        """Append *result* to the session, in arrival order."""
        session = self._get_active(session_id)
        if result.dry_run != session.dry_run:
            raise ValueError(
                f"Result for {result.task_name} has dry_run={result.dry_run}, "
                f"session {session_id} has dry_run={session.dry_run}"
            )
        session.task_results.append(result)
        logger.info(
            f"Session {session_id}: {result.task_name} "
            f"{'succeeded' if result.success else 'failed'} — "
            f"detected={result.items_detected}, processed={result.items_processed}, "
            f"failed={result.items_failed}, {result.duration_ms}ms"
            + (f", error={result.error_message}" if result.error_message else "")
        )

    def get_session(self, session_id: str) -> Session:
        session = self._active.get(session_id) or self._finalized.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session.model_copy(deep=True)

    async def finalize_session(self, session_id: str) -> Session:
        """Stamp the end time and write the manifest. Allowed once per session."""
        session = self._get_active(session_id)
        end_time = datetime.now(UTC)

        manifest = SessionManifest(
            session_id=session.session_id,
            hostname=session.hostname,
            start_time=session.start_time,
            end_time=end_time,
            dry_run=session.dry_run,
            task_results=list(session.task_results),
        )
        await write_manifest(self.paths, manifest)

        session.end_time = end_time
        del self._active[session_id]
        self._finalized[session_id] = session

        failed = sum(1 for r in session.task_results if not r.success)
        logger.info(
            f"Session {session_id}: finalized — {len(session.task_results)} tasks, {failed} failed, "
            f"{(end_time - session.start_time).total_seconds():.1f}s"
        )
        return session.model_copy(deep=True)


async def list_sessions(paths: PathSet) -> list[SessionSummary]:
    """Summaries of every session on disk, newest first."""
    summaries: list[SessionSummary] = []
    if not paths.sessions_dir.exists():
        return summaries

    for session_dir in paths.sessions_dir.iterdir():
        if not session_dir.is_dir():
            continue
        session_id = session_dir.name
        try:
            manifest = await load_manifest(paths, session_id)
        except (ManifestError, SessionNotFoundError) as exc:
            summaries.append(SessionSummary(session_id=session_id, complete=False, error=str(exc)))
            continue
        summaries.append(
            SessionSummary(
                session_id=session_id,
                complete=True,
                start_time=manifest.start_time,
                end_time=manifest.end_time,
                dry_run=manifest.dry_run,
                task_count=len(manifest.task_results),
                failed_tasks=sum(1 for r in manifest.task_results if not r.success),
            )
        )

    # ULIDs sort by creation time
    summaries.sort(key=lambda s: s.session_id, reverse=True)
    return summaries


def prune_sessions(paths: PathSet, retention_days: int, *, now: datetime | None = None) -> list[str]:
    """Delete sessions created more than *retention_days* ago. Returns the removed ids."""
    cutoff = (now or datetime.now(UTC)) - timedelta(days=retention_days)
    removed: list[str] = []
    if not paths.sessions_dir.exists():
        return removed

    for session_dir in paths.sessions_dir.iterdir():
        if not session_dir.is_dir():
            continue
        try:
            created = ULID.from_str(session_dir.name).datetime
        except ValueError:
            logger.warning(f"Not a session directory, leaving it alone: {session_dir}")
            continue
        if created >= cutoff:
            continue
        try:
            delete_session_files(paths, session_dir.name)
        except OSError as exc:
            logger.error(f"Could not prune session {session_dir.name}: {exc}")
            continue
        removed.append(session_dir.name)

    if removed:
        logger.info(f"Pruned {len(removed)} sessions older than {retention_days} days")
    return removed
