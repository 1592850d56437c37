import json

import pytest
from conftest import descriptor

from hostcare.core.errors import ManifestIncomplete
from hostcare.core.storage import get_actions_path, get_detections_path, get_report_path
from hostcare.orchestration.coordinator import run_session
from hostcare.pipeline import normalizer
from hostcare.pipeline.normalizer import normalize
from hostcare.pipeline.report import generate_report
from hostcare.schema.report import ModuleStatus
from hostcare.schema.session import TaskResult
from hostcare.session.manager import SessionManager
from hostcare.session.manifest import get_marker_path


def _write(path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


async def _finalized(paths, *results: TaskResult) -> str:
    manager = SessionManager(paths)
    session = manager.start_session()
    for result in results:
        manager.record_result(session.session_id, result)
    await manager.finalize_session(session.session_id)
    return session.session_id


async def test_one_report_per_task_even_when_artifacts_are_broken(paths, fake_tasks):
    catalog = [
        descriptor("clean", fake_tasks.detector("det.clean", items=2), fake_tasks.actor("act.clean")),
        descriptor("garbled", fake_tasks.detector("det.garbled", items=1)),
        descriptor("vanished", fake_tasks.detector("det.vanished", items=1)),
        descriptor("crashed", fake_tasks.detector("det.crashed", raises=RuntimeError("nope"))),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    sid = session.session_id
    _write(get_detections_path(paths, sid, "garbled"), "{not json")
    get_detections_path(paths, sid, "vanished").unlink()

    reports = await normalize(sid, paths)
    by_name = {r.task_name: r for r in reports}

    assert [r.task_name for r in reports] == ["clean", "garbled", "vanished", "crashed"]
    assert by_name["clean"].status == ModuleStatus.success
    assert by_name["clean"].degraded is False
    assert len(by_name["clean"].detections) == 2
    assert [a.outcome for a in by_name["clean"].actions] == ["processed", "processed"]
    for name in ("garbled", "vanished", "crashed"):
        assert by_name[name].degraded is True
        assert by_name[name].status == ModuleStatus.degraded
        assert by_name[name].degraded_reasons


async def test_status_mapping(paths, fake_tasks):
    catalog = [
        descriptor("partial", fake_tasks.detector("det.p", items=2), fake_tasks.actor("act.p", fail_every=2)),
        descriptor(
            "actor-crash",
            fake_tasks.detector("det.ac", items=1),
            fake_tasks.actor("act.ac", raises=RuntimeError("x")),
        ),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    reports = await normalize(session.session_id, paths)

    assert [r.status for r in reports] == [ModuleStatus.warning, ModuleStatus.failed]


async def test_dry_run_status(paths, fake_tasks):
    catalog = [
        descriptor("would-act", fake_tasks.detector("det.w", items=2), fake_tasks.actor("act.w")),
        descriptor("nothing", fake_tasks.detector("det.n", items=0), fake_tasks.actor("act.n")),
    ]
    session = await run_session(catalog, dry_run=True, paths=paths)
    reports = await normalize(session.session_id, paths)

    assert [r.status for r in reports] == [ModuleStatus.dry_run, ModuleStatus.success]


async def test_alternate_artifact_shapes_are_reshaped(paths):
    sid = await _finalized(
        paths,
        TaskResult(task_name="legacy", success=True, items_detected=2, items_processed=1, items_failed=1),
    )
    detections = [
        {"itemId": "a", "type": "cache", "displayName": "A", "rule": "size", "details": {"bytes": 1}},
        {"id": "b", "kind": "cache", "name": "B", "matchedRule": "size"},
    ]
    _write(get_detections_path(paths, sid, "legacy"), json.dumps(detections))
    _write(
        get_actions_path(paths, sid, "legacy"),
        json.dumps({"item": "a", "status": "PROCESSED", "timestamp": 1700000000}) + "\n"
        + json.dumps({"path": "b", "result": "Failed", "timestamp_ms": 1700000000500}) + "\n"
    )

    (report,) = await normalize(sid, paths)

    assert report.degraded is False
    assert [d.item_id for d in report.detections] == ["a", "b"]
    assert report.detections[0].category == "cache"
    assert report.detections[0].metadata == {"bytes": 1}
    assert [(a.target, a.outcome, a.timestamp_ms) for a in report.actions] == [
        ("a", "processed", 1700000000000),
        ("b", "failed", 1700000000500),
    ]
    assert report.status == ModuleStatus.warning


async def test_count_mismatch_and_missing_action_log_degrade(paths):
    sid = await _finalized(
        paths,
        TaskResult(task_name="odd", success=True, items_detected=3, items_processed=3),
    )
    _write(get_detections_path(paths, sid, "odd"), json.dumps({"count": 1, "items": [{"item_id": "x"}]}))

    (report,) = await normalize(sid, paths)

    assert report.degraded is True
    assert "action log missing" in report.degraded_reasons
    assert any("summary reports 3" in r for r in report.degraded_reasons)


async def test_bad_action_lines_are_reported(paths):
    sid = await _finalized(paths, TaskResult(task_name="t", success=True, items_detected=1, items_processed=1))
    _write(get_detections_path(paths, sid, "t"), json.dumps({"count": 1, "items": [{"item_id": "x"}]}))
    _write(
        get_actions_path(paths, sid, "t"),
        "garbage\n" + json.dumps({"target": "x", "outcome": "processed", "timestamp": "2024-01-01T00:00:00Z"}) + "\n"
    )

    (report,) = await normalize(sid, paths)

    assert report.degraded is True
    assert len(report.actions) == 1
    assert report.degraded_reasons == ["action log line 1 is not JSON"]


async def test_unexpected_error_becomes_degraded_report(paths, monkeypatch):
    sid = await _finalized(paths, TaskResult(task_name="t", success=True))

    async def explode(*args, **kwargs):
        raise KeyError("surprise")

    monkeypatch.setattr(normalizer, "_normalize_task", explode)

    (report,) = await normalize(sid, paths)

    assert report.degraded is True
    assert report.degraded_reasons[0].startswith("normalization failed")


async def test_second_normalization_is_served_from_cache(paths, fake_tasks, monkeypatch):
    catalog = [descriptor("t", fake_tasks.detector("det.t", items=1))]
    session = await run_session(catalog, dry_run=False, paths=paths)
    first = await normalize(session.session_id, paths)

    async def must_not_run(*args, **kwargs):
        raise AssertionError("cache miss")

    monkeypatch.setattr(normalizer, "_normalize_task", must_not_run)
    second = await normalize(session.session_id, paths)

    assert second == first


async def test_unreadable_manifest(paths, fake_tasks):
    catalog = [
        descriptor("a", fake_tasks.detector("det.a", items=1)),
        descriptor("b", fake_tasks.detector("det.b", items=1), enabled=False),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)
    get_marker_path(paths, session.session_id).unlink()

    with pytest.raises(ManifestIncomplete):
        await normalize(session.session_id, paths)

    reports = await normalize(session.session_id, paths, catalog=catalog)
    assert [r.task_name for r in reports] == ["a"]
    assert reports[0].degraded is True


async def test_generate_report_writes_envelope(paths, fake_tasks):
    catalog = [
        descriptor("ok", fake_tasks.detector("det.ok", items=2), fake_tasks.actor("act.ok")),
        descriptor("bad", fake_tasks.detector("det.bad", raises=ValueError("x"))),
    ]
    session = await run_session(catalog, dry_run=False, paths=paths)

    report = await generate_report(session.session_id, paths)

    assert report.totals.tasks == 2
    assert report.totals.items_detected == 2
    assert report.totals.items_processed == 2
    assert report.totals.by_status == {"degraded": 1, "success": 1}
    assert report.end_time == session.end_time
    stored = json.loads(get_report_path(paths, session.session_id).read_text())
    assert stored["session_id"] == session.session_id
    assert len(stored["modules"]) == 2
