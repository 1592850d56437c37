import json

from hostcare.__main__ import main


def _catalog(tmp_path, body: str):
    path = tmp_path / "catalog.yaml"
    path.write_text(body)
    return str(path)


def test_run_prints_report(tmp_path, capsys):
    catalog = _catalog(
        tmp_path,
        "tasks:\n  - name: temp_files\n    detector_ref: temp_files.scan\n    actor_ref: temp_files.quarantine\n",
    )

    assert main(["run", "--catalog", catalog, "--dry-run"]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report["dry_run"] is True
    assert [m["task_name"] for m in report["modules"]] == ["temp_files"]


def test_report_of_unknown_session_fails(capsys):
    assert main(["report", "01ARZ3NDEKTSV4RRFFQ69G5FAV"]) == 1


def test_missing_catalog_fails(tmp_path):
    assert main(["run", "--catalog", str(tmp_path / "nope.yaml")]) == 1


def test_sessions_and_prune(tmp_path, capsys):
    catalog = _catalog(tmp_path, "- name: t\n  detector_ref: temp_files.scan\n")
    main(["run", "--catalog", catalog, "--no-report"])
    session_id = json.loads(capsys.readouterr().out)["session_id"]

    assert main(["sessions"]) == 0
    listed = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert [s["session_id"] for s in listed] == [session_id]

    assert main(["prune", "--days", "30"]) == 0
    assert capsys.readouterr().out == ""
