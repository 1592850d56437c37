"""
Log normalization: turns a finalized session's raw artifacts into one
``NormalizedModuleReport`` per task.

Normalization is total: every task listed in the manifest gets exactly one
report. Anything that goes wrong for a task is caught, logged, and shows up
as ``degraded=True`` on that task's report.
"""

from __future__ import annotations

from hostcare.core.cache import cache, make_cache_key
from hostcare.core.config import settings
from hostcare.core.errors import ArtifactNormalizationError, ManifestError, SessionNotFoundError
from hostcare.core.init_guard import PathSet
from hostcare.core.log import logger
from hostcare.core.storage import get_actions_path, get_detections_path
from hostcare.pipeline.loaders import load_actions, load_detections
from hostcare.schema.catalog import TaskDescriptor
from hostcare.schema.report import ModuleStatus, NormalizedModuleReport
from hostcare.schema.session import SessionManifest, TaskResult
from hostcare.session.manifest import load_manifest

__all__ = (
    "module_status",
    "normalize",
    "normalize_session",
)


def module_status(summary: TaskResult, degraded: bool) -> ModuleStatus:
    if degraded:
        return ModuleStatus.degraded
    if not summary.success:
        return ModuleStatus.failed
    if summary.items_failed > 0:
        return ModuleStatus.warning
    if summary.dry_run and summary.items_detected > 0:
        return ModuleStatus.dry_run
    return ModuleStatus.success


def _degraded_report(summary: TaskResult, reasons: list[str]) -> NormalizedModuleReport:
    return NormalizedModuleReport(
        task_name=summary.task_name,
        status=ModuleStatus.degraded,
        summary=summary,
        degraded=True,
        degraded_reasons=reasons,
    )


async def _normalize_task(paths: PathSet, session_id: str, summary: TaskResult) -> NormalizedModuleReport:
    reasons: list[str] = []
    task_name = summary.task_name

    detections_path = get_detections_path(paths, session_id, task_name)
    try:
        detections, problems = await load_detections(detections_path, task_name)
        reasons.extend(problems)
        if not problems and len(detections) != summary.items_detected:
            reasons.append(
                f"detection artifact holds {len(detections)} items, summary reports {summary.items_detected}"
            )
    except ArtifactNormalizationError as exc:
        detections = []
        reasons.append(exc.reason)

    actions_path = get_actions_path(paths, session_id, task_name)
    actions, problems = await load_actions(actions_path)
    reasons.extend(problems)
    if summary.items_processed + summary.items_failed > 0 and not actions_path.exists():
        reasons.append("action log missing")

    degraded = bool(reasons)
    if degraded:
        logger.warning(f"Session {session_id}: {task_name} normalized as degraded — {'; '.join(reasons)}")

    return NormalizedModuleReport(
        task_name=task_name,
        status=module_status(summary, degraded),
        summary=summary,
        detections=detections,
        actions=actions,
        degraded=degraded,
        degraded_reasons=reasons,
    )


async def _cache_get(key: str) -> NormalizedModuleReport | None:
    try:
        cached = await cache.get(key)
    except Exception as exc:
        logger.warning(f"Report cache read failed: {exc}")
        return None
    if cached is None:
        return None
    try:
        return NormalizedModuleReport.model_validate(cached)
    except ValueError:
        logger.warning(f"Ignoring unreadable cached report {key}")
        return None


async def _cache_set(key: str, report: NormalizedModuleReport) -> None:
    try:
        await cache.set(key, report.model_dump(mode="json"), ttl=settings.REPORT_CACHE_TTL)
    except Exception as exc:
        logger.warning(f"Report cache write failed: {exc}")


async def _normalize_manifest(manifest: SessionManifest, paths: PathSet) -> list[NormalizedModuleReport]:
    session_id = manifest.session_id
    reports: list[NormalizedModuleReport] = []
    hits = 0

    for summary in manifest.task_results:
        key = make_cache_key(session_id, summary.task_name)
        report = await _cache_get(key)
        if report is not None:
            hits += 1
            reports.append(report)
            continue

        try:
            report = await _normalize_task(paths, session_id, summary)
        except Exception as exc:
            logger.error(f"Session {session_id}: normalizing {summary.task_name} failed: {exc}")
            report = _degraded_report(summary, [f"normalization failed: {type(exc).__name__}: {exc}"])

        await _cache_set(key, report)
        reports.append(report)

    logger.info(
        f"Session {session_id}: normalized {len(reports)} task reports "
        f"({hits} from cache, {sum(1 for r in reports if r.degraded)} degraded)"
    )
    return reports


async def normalize_session(
    session_id: str,
    paths: PathSet,
    *,
    catalog: list[TaskDescriptor] | None = None,
) -> tuple[SessionManifest | None, list[NormalizedModuleReport]]:
    """
    Normalize a session and also hand back its manifest.

    If the manifest cannot be read and *catalog* is given, every enabled
    catalog entry is reported as degraded and the manifest is ``None``.
    Without a catalog the manifest error propagates.
    """
    try:
        manifest = await load_manifest(paths, session_id)
    except (ManifestError, SessionNotFoundError) as exc:
        if catalog is None:
            raise
        logger.error(f"Session {session_id}: manifest unavailable ({exc}), reporting catalog as degraded")
        reason = f"session manifest unavailable: {exc}"
        reports = [
            _degraded_report(
                TaskResult(task_name=d.name, success=False, error_message="no session record"),
                [reason],
            )
            for d in catalog
            if d.enabled
        ]
        return None, reports

    return manifest, await _normalize_manifest(manifest, paths)


async def normalize(
    session_id: str,
    paths: PathSet,
    *,
    catalog: list[TaskDescriptor] | None = None,
) -> list[NormalizedModuleReport]:
    """One canonical report per task of the session, in execution order."""
    _, reports = await normalize_session(session_id, paths, catalog=catalog)
    return reports
