"""
Task executor: runs one catalog entry (detect, then act) and always returns
a ``TaskResult``.
"""

import json
from time import perf_counter

from hostcare.core.errors import TaskExecutionError, TaskTimeout
from hostcare.core.init_guard import PathSet
from hostcare.core.log import logger
from hostcare.core.storage import get_actions_path, get_detections_path, get_task_dir, write_json_atomic
from hostcare.ledger.ledger import ChangeLedger
from hostcare.orchestration.isolation import run_isolated
from hostcare.schema.catalog import TaskDescriptor
from hostcare.schema.detection import DetectionRecord
from hostcare.schema.session import TaskResult
from hostcare.tasks.contracts import ActContext, ActorOutcome, DetectContext
from hostcare.tasks.registry import get_actor, get_detector

__all__ = ("execute_task",)


def _elapsed_ms(t0: float) -> int:
    return int((perf_counter() - t0) * 1000)


def _failure(
    descriptor: TaskDescriptor,
    *,
    t0: float,
    dry_run: bool,
    error: str,
    artifact_path: str,
    items_detected: int = 0,
) -> TaskResult:
    return TaskResult(
        task_name=descriptor.name,
        success=False,
        items_detected=items_detected,
        duration_ms=_elapsed_ms(t0),
        dry_run=dry_run,
        error_message=error,
        artifact_path=artifact_path,
    )


async def _write_detections(path, items: list[DetectionRecord]) -> None:
    payload = {
        "count": len(items),
        "items": [item.model_dump(mode="json") for item in items],
    }
    await write_json_atomic(path, json.dumps(payload, indent=2, default=str))


def _checked_counts(descriptor: TaskDescriptor, outcome: ActorOutcome, detected: int) -> tuple[int, int, str | None]:
    """Clamp actor-reported counts so processed + failed never exceeds detected."""
    processed = max(0, outcome.processed)
    failed = max(0, outcome.failed)
    if processed + failed <= detected:
        return processed, failed, None

    processed = min(processed, detected)
    failed = min(failed, detected - processed)
    message = (
        f"actor reported {outcome.processed} processed + {outcome.failed} failed "
        f"for {detected} detected items"
    )
    logger.warning(f"{descriptor.name}: {message}")
    return processed, failed, message


async def execute_task(
    descriptor: TaskDescriptor,
    *,
    session_id: str,
    paths: PathSet,
    ledger: ChangeLedger,
    dry_run: bool,
) -> TaskResult:
    """
    Execute a single catalog entry.

    Never raises for task-level problems: unknown refs, detector/actor
    exceptions and timeouts all come back as ``TaskResult(success=False)``.
    """
    t0 = perf_counter()
    task_name = descriptor.name
    timeout = descriptor.timeout_seconds
    artifact_path = str(get_task_dir(paths, session_id, task_name))

    detect_fn = get_detector(descriptor.detector_ref)
    if detect_fn is None:
        exc = TaskExecutionError(task_name, f"unknown detector '{descriptor.detector_ref}'")
        logger.error(str(exc))
        return _failure(descriptor, t0=t0, dry_run=dry_run, error=str(exc), artifact_path=artifact_path)

    act_fn = None
    if descriptor.actor_ref is not None:
        act_fn = get_actor(descriptor.actor_ref)
        if act_fn is None:
            exc = TaskExecutionError(task_name, f"unknown actor '{descriptor.actor_ref}'")
            logger.error(str(exc))
            return _failure(descriptor, t0=t0, dry_run=dry_run, error=str(exc), artifact_path=artifact_path)

    # ── Detect ───────────────────────────────────────────────────────────
    detect_ctx = DetectContext(session_id=session_id, task_name=task_name, paths=paths, dry_run=dry_run)
    try:
        raw_items = await run_isolated(
            lambda: detect_fn(detect_ctx), timeout, name=f"hostcare-{task_name}-detect"
        )
        items = [i if isinstance(i, DetectionRecord) else DetectionRecord.model_validate(i) for i in raw_items]
    except TimeoutError:
        logger.error(str(TaskTimeout(task_name, "detector", timeout)))
        return _failure(descriptor, t0=t0, dry_run=dry_run, error="timeout", artifact_path=artifact_path)
    except Exception as exc:
        logger.error(f"{task_name}: detector raised {type(exc).__name__}: {exc}")
        return _failure(
            descriptor, t0=t0, dry_run=dry_run, error=f"detector error: {exc}", artifact_path=artifact_path
        )

    try:
        await _write_detections(get_detections_path(paths, session_id, task_name), items)
    except (OSError, TypeError, ValueError) as exc:
        logger.error(f"{task_name}: could not write detection artifact: {exc}")
        return _failure(
            descriptor,
            t0=t0,
            dry_run=dry_run,
            error=f"artifact write failed: {exc}",
            artifact_path=artifact_path,
            items_detected=len(items),
        )

    detected = len(items)
    logger.info(f"{task_name}: detector found {detected} items")

    if dry_run or act_fn is None:
        if dry_run and act_fn is not None:
            logger.info(f"{task_name}: dry run, would process {detected} items")
        return TaskResult(
            task_name=task_name,
            success=True,
            items_detected=detected,
            duration_ms=_elapsed_ms(t0),
            dry_run=dry_run,
            artifact_path=artifact_path,
        )

    # ── Act ──────────────────────────────────────────────────────────────
    act_ctx = ActContext(
        session_id=session_id,
        task_name=task_name,
        paths=paths,
        dry_run=False,
        ledger=ledger,
        actions_path=get_actions_path(paths, session_id, task_name),
    )
    try:
        outcome = await run_isolated(lambda: act_fn(act_ctx, items), timeout, name=f"hostcare-{task_name}-act")
        if not isinstance(outcome, ActorOutcome):
            raise TypeError(f"expected ActorOutcome, got {type(outcome).__name__}")
        processed, failed, violation = _checked_counts(descriptor, outcome, detected)
        result = TaskResult(
            task_name=task_name,
            success=outcome.success is True and violation is None,
            items_detected=detected,
            items_processed=processed,
            items_failed=failed,
            duration_ms=_elapsed_ms(t0),
            dry_run=False,
            error_message=violation or outcome.error_message,
            artifact_path=artifact_path,
        )
    except TimeoutError:
        logger.error(str(TaskTimeout(task_name, "actor", timeout)))
        return _failure(
            descriptor,
            t0=t0,
            dry_run=False,
            error="timeout",
            artifact_path=artifact_path,
            items_detected=detected,
        )
    except Exception as exc:
        logger.error(f"{task_name}: actor raised {type(exc).__name__}: {exc}")
        return _failure(
            descriptor,
            t0=t0,
            dry_run=False,
            error=f"actor error: {exc}",
            artifact_path=artifact_path,
            items_detected=detected,
        )

    return result
