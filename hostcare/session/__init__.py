"""Session aggregation and manifests."""

from hostcare.session.manager import SessionManager, list_sessions, prune_sessions
from hostcare.session.manifest import load_manifest, write_manifest

__all__ = (
    "SessionManager",
    "list_sessions",
    "load_manifest",
    "prune_sessions",
    "write_manifest",
)
