"""
REST API router: read-only session access, report, and rollback.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from hostcare.api.deps import get_paths, verify_token
from hostcare.core.errors import ManifestError, SessionNotFoundError
from hostcare.core.init_guard import PathSet
from hostcare.ledger.undo import undo_all
from hostcare.pipeline.report import generate_report
from hostcare.schema.ledger import UndoSummary
from hostcare.schema.report import SessionReport
from hostcare.schema.session import SessionManifest, SessionSummary
from hostcare.session.manager import list_sessions
from hostcare.session.manifest import load_manifest

__all__ = ("router",)

router = APIRouter(
    prefix="/v1",
    tags=["sessions"],
    dependencies=[Depends(verify_token)],
)


async def _manifest_or_error(session_id: str, paths: PathSet) -> SessionManifest:
    try:
        return await load_manifest(paths, session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Session not found") from exc
    except ManifestError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/sessions")
async def get_sessions(paths: PathSet = Depends(get_paths)) -> list[SessionSummary]:  # noqa: B008
    """List sessions on disk, newest first."""
    return await list_sessions(paths)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, paths: PathSet = Depends(get_paths)) -> SessionManifest:  # noqa: B008
    """Get the finalized manifest of a session."""
    return await _manifest_or_error(session_id, paths)


@router.get("/sessions/{session_id}/report")
async def get_report(session_id: str, paths: PathSet = Depends(get_paths)) -> SessionReport:  # noqa: B008
    """Canonical report for a session, one module entry per task."""
    await _manifest_or_error(session_id, paths)
    return await generate_report(session_id, paths)


@router.post("/sessions/{session_id}/undo")
async def undo_session(session_id: str, paths: PathSet = Depends(get_paths)) -> UndoSummary:  # noqa: B008
    """Roll back every recorded change of a session, most recent first."""
    await _manifest_or_error(session_id, paths)
    return await undo_all(session_id, paths)
