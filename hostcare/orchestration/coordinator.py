"""
Execution coordinator: runs the catalog, one task at a time, in order.
"""

from __future__ import annotations

from time import perf_counter

from hostcare.core.init_guard import PathSet
from hostcare.core.log import bind_correlation_id, logger
from hostcare.ledger.ledger import ChangeLedger
from hostcare.orchestration.executor import execute_task
from hostcare.schema.catalog import TaskDescriptor
from hostcare.schema.session import Session
from hostcare.session.manager import SessionManager

__all__ = ("run_session",)


async def run_session(
    catalog: list[TaskDescriptor],
    *,
    dry_run: bool,
    paths: PathSet,
    manager: SessionManager | None = None,
) -> Session:
    """
    Main orchestration entry point.

    Executes every enabled descriptor sequentially in catalog order, records
    each outcome with the session manager, and finalizes the session. Task
    failures and timeouts are recorded, never raised.
    """
    manager = manager or SessionManager(paths)
    session = manager.start_session(dry_run=dry_run)
    session_id = session.session_id
    ledger = ChangeLedger(paths, session_id)

    enabled = [d for d in catalog if d.enabled]
    t0 = perf_counter()

    with bind_correlation_id(session_id):
        logger.info(
            f"Session {session_id}: running {len(enabled)} of {len(catalog)} tasks"
            + (" (dry run)" if dry_run else "")
        )

        for index, descriptor in enumerate(enabled, start=1):
            logger.info(f"Session {session_id}: task {index}/{len(enabled)} — {descriptor.name}")
            result = await execute_task(
                descriptor,
                session_id=session_id,
                paths=paths,
                ledger=ledger,
                dry_run=dry_run,
            )
            manager.record_result(session_id, result)

        finalized = await manager.finalize_session(session_id)

        failed = sum(1 for r in finalized.task_results if not r.success)
        logger.info(
            f"Session {session_id}: run complete — "
            f"{len(finalized.task_results)} tasks, {failed} failed, "
            f"{len(ledger)} changes recorded, {perf_counter() - t0:.1f}s"
        )

    return finalized
