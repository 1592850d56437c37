"""
App Entry Point

    python -m hostcare run [--catalog PATH] [--dry-run] [--no-report]
    python -m hostcare report SESSION_ID
    python -m hostcare undo SESSION_ID
    python -m hostcare sessions
    python -m hostcare prune [--days N]
    python -m hostcare serve
"""

import argparse
import asyncio
import sys

from hostcare.core.config import settings
from hostcare.core.errors import HostcareError
from hostcare.core.init_guard import ensure_initialized
from hostcare.core.log import bind_correlation_id, logger

DESCRIPTION = """
hostcare: unattended host maintenance.

Runs the task catalog (detect, then act) against this machine, keeps an
undo ledger of every change, and produces a canonical JSON report.
"""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hostcare",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_run = subparsers.add_parser("run", help="Run the maintenance catalog.")
    p_run.add_argument("--catalog", default=None, help="Path to a catalog YAML file.")
    p_run.add_argument("--dry-run", action="store_true", help="Detect only, never act.")
    p_run.add_argument("--no-report", action="store_true", help="Skip report generation after the run.")

    p_report = subparsers.add_parser("report", help="(Re)generate the report of a session.")
    p_report.add_argument("session_id")
    p_report.add_argument("--catalog", default=None, help="Catalog used when the manifest is unreadable.")

    p_undo = subparsers.add_parser("undo", help="Roll back the recorded changes of a session.")
    p_undo.add_argument("session_id")

    subparsers.add_parser("sessions", help="List sessions on disk.")

    p_prune = subparsers.add_parser("prune", help="Delete old sessions.")
    p_prune.add_argument("--days", type=int, default=settings.SESSION_RETENTION_DAYS)

    subparsers.add_parser("serve", help="Serve sessions and reports over HTTP.")
    return parser


async def _run(args: argparse.Namespace) -> int:
    from hostcare.orchestration.coordinator import run_session
    from hostcare.pipeline.report import generate_report
    from hostcare.tasks.catalog import load_catalog

    paths = ensure_initialized()
    catalog = load_catalog(args.catalog)
    session = await run_session(catalog, dry_run=args.dry_run, paths=paths)

    if not args.no_report:
        with bind_correlation_id(session.session_id):
            report = await generate_report(session.session_id, paths, catalog=catalog)
        print(report.model_dump_json(indent=2))
    else:
        print(session.model_dump_json(indent=2))

    return 0 if all(r.success for r in session.task_results) else 2


async def _report(args: argparse.Namespace) -> int:
    from hostcare.pipeline.report import generate_report
    from hostcare.tasks.catalog import load_catalog

    paths = ensure_initialized()
    catalog = load_catalog(args.catalog) if args.catalog else None
    with bind_correlation_id(args.session_id):
        report = await generate_report(args.session_id, paths, catalog=catalog)
    print(report.model_dump_json(indent=2))
    return 0


async def _undo(args: argparse.Namespace) -> int:
    from hostcare.ledger.undo import undo_all

    paths = ensure_initialized()
    with bind_correlation_id(args.session_id):
        summary = await undo_all(args.session_id, paths)
    print(summary.model_dump_json(indent=2))
    return 0 if summary.failed == 0 else 2


async def _sessions(args: argparse.Namespace) -> int:
    from hostcare.session.manager import list_sessions

    for summary in await list_sessions(ensure_initialized()):
        print(summary.model_dump_json())
    return 0


def _prune(args: argparse.Namespace) -> int:
    from hostcare.session.manager import prune_sessions

    for session_id in prune_sessions(ensure_initialized(), args.days):
        print(session_id)
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from hostcare.core.log import uvicorn_log_config

    uvicorn.run(
        "hostcare.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        workers=settings.APP_WORKERS,
        log_config=uvicorn_log_config,
        reload=False,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "serve":
            return _serve(args)
        if args.command == "prune":
            return _prune(args)
        handler = {
            "run": _run,
            "report": _report,
            "undo": _undo,
            "sessions": _sessions,
        }[args.command]
        return asyncio.run(handler(args))
    except HostcareError as exc:
        logger.error(f"{args.command} failed: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
