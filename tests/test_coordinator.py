import asyncio
import os
import time
from time import perf_counter

from conftest import descriptor

from hostcare.core.config import settings
from hostcare.core.storage import get_actions_path, get_detections_path
from hostcare.ledger.ledger import get_ledger_path, load_entries, load_journal
from hostcare.ledger.undo import undo_all
from hostcare.orchestration.coordinator import run_session
from hostcare.schema.ledger import ChangeState
from hostcare.session.manager import SessionManager
from hostcare.session.manifest import load_manifest
from hostcare.tasks.builtin import temp_files
from hostcare.tasks.contracts import ActorOutcome
from hostcare.tasks.registry import ACTORS


async def test_results_follow_catalog_order(paths, fake_tasks):
    catalog = [
        descriptor("c", fake_tasks.detector("det.c", items=1)),
        descriptor("a", fake_tasks.detector("det.a", items=2)),
        descriptor("b", fake_tasks.detector("det.b", items=0)),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)

    assert [r.task_name for r in session.task_results] == ["c", "a", "b"]
    assert fake_tasks.calls == ["detect:det.c", "detect:det.a", "detect:det.b"]
    assert session.finalized


async def test_disabled_tasks_are_skipped(paths, fake_tasks):
    catalog = [
        descriptor("on", fake_tasks.detector("det.on", items=1)),
        descriptor("off", fake_tasks.detector("det.off", items=1), enabled=False),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)

    assert [r.task_name for r in session.task_results] == ["on"]
    assert "detect:det.off" not in fake_tasks.calls


async def test_failures_do_not_stop_later_tasks(paths, fake_tasks):
    catalog = [
        descriptor("boom", fake_tasks.detector("det.boom", raises=RuntimeError("disk on fire"))),
        descriptor("hang", fake_tasks.detector("det.hang", hang=True), timeout=0.1),
        descriptor(
            "act-boom",
            fake_tasks.detector("det.ok", items=2),
            fake_tasks.actor("act.boom", raises=PermissionError("denied")),
        ),
        descriptor("last", fake_tasks.detector("det.last", items=4)),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    by_name = {r.task_name: r for r in session.task_results}

    assert len(session.task_results) == 4
    assert by_name["boom"].success is False
    assert "disk on fire" in by_name["boom"].error_message
    assert by_name["hang"].success is False
    assert by_name["hang"].error_message == "timeout"
    assert by_name["act-boom"].success is False
    assert by_name["act-boom"].items_detected == 2
    assert by_name["act-boom"].error_message.startswith("actor error")
    assert by_name["last"].success is True
    assert by_name["last"].items_detected == 4


async def test_actor_returning_nothing_fails_only_that_task(paths, fake_tasks, monkeypatch):
    async def returns_nothing(ctx, items):
        return None

    monkeypatch.setitem(ACTORS, "act.nothing", returns_nothing)
    catalog = [
        descriptor("silent", fake_tasks.detector("det.silent", items=2), "act.nothing"),
        descriptor("after", fake_tasks.detector("det.after", items=1), fake_tasks.actor("act.after")),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    silent, after = session.task_results

    assert silent.success is False
    assert silent.items_detected == 2
    assert silent.error_message.startswith("actor error")
    assert "NoneType" in silent.error_message
    assert (after.success, after.items_processed) == (True, 1)
    assert session.finalized


async def test_blocking_detector_is_timed_out(paths, fake_tasks):
    catalog = [
        descriptor("stuck", fake_tasks.detector("det.stuck", block=2.0), timeout=0.2),
        descriptor("next", fake_tasks.detector("det.next", items=1)),
    ]
    t0 = perf_counter()
    session = await run_session(catalog, dry_run=False, paths=paths)
    elapsed = perf_counter() - t0
    stuck, after = session.task_results

    assert elapsed < 1.5
    assert (stuck.success, stuck.error_message) == (False, "timeout")
    assert after.success is True


async def test_timeout_during_quarantine_keeps_the_change_undoable(paths, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "TEMP_FILE_MAX_AGE_DAYS", 7)
    stale = tmp_path / "scratch" / "stale.log"
    stale.parent.mkdir(parents=True)
    stale.write_text("keep me")
    past = time.time() - 30 * 86400
    os.utime(stale, (past, past))

    real_move = temp_files._move

    def slow_move(source, destination):
        time.sleep(0.8)
        real_move(source, destination)

    monkeypatch.setattr(temp_files, "_move", slow_move)
    catalog = [descriptor("temp_files", "temp_files.scan", "temp_files.quarantine", timeout=0.3)]

    session = await run_session(catalog, dry_run=False, paths=paths)
    (result,) = session.task_results
    assert (result.success, result.error_message) == (False, "timeout")

    # the abandoned move still completes in the background
    for _ in range(50):
        if not stale.exists():
            break
        await asyncio.sleep(0.1)
    assert not stale.exists()

    entries, errors = await load_entries(paths, session.session_id)
    assert errors == []
    assert [e.target for e in entries] == [str(stale)]

    summary = await undo_all(session.session_id, paths)
    assert (summary.succeeded, summary.failed) == (1, 0)
    assert stale.read_text() == "keep me"


async def test_failed_mutation_is_not_undone(paths, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "TEMP_FILE_MAX_AGE_DAYS", 7)
    stale = tmp_path / "scratch" / "locked.log"
    stale.parent.mkdir(parents=True)
    stale.write_text("x")
    past = time.time() - 30 * 86400
    os.utime(stale, (past, past))

    def refuse(source, destination):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr(temp_files, "_move", refuse)
    catalog = [descriptor("temp_files", "temp_files.scan", "temp_files.quarantine")]

    session = await run_session(catalog, dry_run=False, paths=paths)
    (result,) = session.task_results
    assert (result.items_processed, result.items_failed) == (0, 1)

    entries, _ = await load_entries(paths, session.session_id)
    states = await load_journal(paths, session.session_id)
    assert states[entries[0].change_id] == ChangeState.not_applied

    summary = await undo_all(session.session_id, paths)
    assert (summary.succeeded, summary.failed, summary.skipped) == (0, 0, 1)
    assert stale.exists()



async def test_unknown_refs_fail_the_task_only(paths, fake_tasks):
    catalog = [
        descriptor("ghost", "no.such.detector"),
        descriptor("ghost-actor", fake_tasks.detector("det.real", items=1), "no.such.actor"),
        descriptor("fine", fake_tasks.detector("det.fine", items=1)),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)

    assert [r.success for r in session.task_results] == [False, False, True]
    assert "unknown detector" in session.task_results[0].error_message
    assert "unknown actor" in session.task_results[1].error_message


async def test_dry_run_never_invokes_actors(paths, fake_tasks):
    catalog = [
        descriptor(
            "mutating",
            fake_tasks.detector("det.m", items=3),
            fake_tasks.actor("act.m", record_changes=True),
        ),
    ]
    session = await run_session(catalog, dry_run=True, paths=paths)
    result = session.task_results[0]

    assert "act:act.m" not in fake_tasks.calls
    assert result.dry_run is True
    assert result.items_detected == 3
    assert result.items_processed == 0
    assert not get_ledger_path(paths, session.session_id).exists()
    assert not get_actions_path(paths, session.session_id, "mutating").exists()
    assert get_detections_path(paths, session.session_id, "mutating").exists()


async def test_counts_never_exceed_detected(paths, fake_tasks):
    catalog = [
        descriptor("honest", fake_tasks.detector("det.h", items=5), fake_tasks.actor("act.h", fail_every=2)),
        descriptor(
            "liar",
            fake_tasks.detector("det.l", items=2),
            fake_tasks.actor("act.l", outcome=ActorOutcome(processed=5, failed=3)),
        ),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    honest, liar = session.task_results

    assert (honest.items_processed, honest.items_failed) == (3, 2)
    assert honest.success is True
    for r in session.task_results:
        assert r.items_processed + r.items_failed <= r.items_detected
    assert liar.success is False
    assert liar.items_processed == 2
    assert liar.items_failed == 0


async def test_hanging_task_then_partial_success(paths, fake_tasks):
    catalog = [
        descriptor("X", fake_tasks.detector("det.x", hang=True), timeout=0.2),
        descriptor("Y", fake_tasks.detector("det.y", items=3), fake_tasks.actor("act.y", fail_every=3)),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    x, y = session.task_results

    assert (x.task_name, x.success, x.error_message) == ("X", False, "timeout")
    assert (y.task_name, y.success) == ("Y", True)
    assert (y.items_detected, y.items_processed, y.items_failed) == (3, 2, 1)

    manifest = await load_manifest(paths, session.session_id)
    assert [r.task_name for r in manifest.task_results] == ["X", "Y"]


async def test_changes_are_ledgered_in_order(paths, fake_tasks):
    catalog = [
        descriptor("first", fake_tasks.detector("det.f", items=2), fake_tasks.actor("act.f", record_changes=True)),
        descriptor("second", fake_tasks.detector("det.s", items=1), fake_tasks.actor("act.s", record_changes=True)),
    ]
    manager = SessionManager(paths)
    session = await run_session(catalog, dry_run=False, paths=paths, manager=manager)

    entries, errors = await load_entries(paths, session.session_id)
    assert errors == []
    assert [e.task_name for e in entries] == ["first", "first", "second"]
    assert manager.get_session(session.session_id).finalized
