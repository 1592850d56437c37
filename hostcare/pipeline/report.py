"""
Session report: the envelope the report renderer consumes.
"""

from __future__ import annotations

from collections import Counter

from hostcare.core.init_guard import PathSet
from hostcare.core.log import logger
from hostcare.core.storage import get_report_path, write_json_atomic
from hostcare.pipeline.normalizer import normalize_session
from hostcare.schema.catalog import TaskDescriptor
from hostcare.schema.report import NormalizedModuleReport, ReportTotals, SessionReport

__all__ = ("build_totals", "generate_report")


def build_totals(modules: list[NormalizedModuleReport]) -> ReportTotals:
    by_status = Counter(str(m.status) for m in modules)
    return ReportTotals(
        tasks=len(modules),
        by_status=dict(sorted(by_status.items())),
        items_detected=sum(m.summary.items_detected for m in modules),
        items_processed=sum(m.summary.items_processed for m in modules),
        items_failed=sum(m.summary.items_failed for m in modules),
    )


async def generate_report(
    session_id: str,
    paths: PathSet,
    *,
    catalog: list[TaskDescriptor] | None = None,
    write: bool = True,
) -> SessionReport:
    """
    Normalize a session and wrap the module reports in a ``SessionReport``.

    With *write* the report is also stored at ``reports/<session_id>.json``.
    """
    manifest, modules = await normalize_session(session_id, paths, catalog=catalog)

    report = SessionReport(
        session_id=session_id,
        hostname=manifest.hostname if manifest else paths.hostname,
        start_time=manifest.start_time if manifest else None,
        end_time=manifest.end_time if manifest else None,
        dry_run=manifest.dry_run if manifest else False,
        totals=build_totals(modules),
        modules=modules,
    )

    if write:
        report_path = get_report_path(paths, session_id)
        await write_json_atomic(report_path, report.model_dump_json(indent=2))
        logger.info(f"Session {session_id}: report written to {report_path}")

    return report
