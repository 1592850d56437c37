import asyncio
import os
import time
from pathlib import Path

os.environ.setdefault("HCR_APP_AUTH_KEY", "test-token")

import pytest

from hostcare.core.config import settings
from hostcare.core.init_guard import ensure_initialized, reset_initialization
from hostcare.schema.catalog import TaskDescriptor
from hostcare.schema.detection import DetectionRecord
from hostcare.schema.ledger import OperationKind, UndoInstruction
from hostcare.tasks.contracts import ActorOutcome
from hostcare.tasks.registry import ACTORS, DETECTORS, load_builtin_tasks


@pytest.fixture(autouse=True)
def paths(tmp_path, monkeypatch):
    """Fresh storage tree per test."""
    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "TEMP_CLEANUP_DIRS", [str(tmp_path / "scratch")])
    reset_initialization()
    yield ensure_initialized()
    reset_initialization()


def make_items(count: int, prefix: str = "item") -> list[DetectionRecord]:
    return [
        DetectionRecord(
            item_id=f"{prefix}-{i}",
            category="test",
            display_name=f"{prefix} {i}",
            matched_rule="always",
            metadata={"index": i},
        )
        for i in range(count)
    ]


class FakeTasks:
    """Registers throwaway detectors/actors and records what was called."""

    def __init__(self, monkeypatch):
        self.monkeypatch = monkeypatch
        self.calls: list[str] = []
        load_builtin_tasks()

    def detector(self, name, *, items=0, raises=None, hang=False, block=0.0):
        async def detect(ctx):
            self.calls.append(f"detect:{name}")
            if hang:
                await asyncio.sleep(30)
            if block:
                # never yields to the event loop
                time.sleep(block)
            if raises is not None:
                raise raises
            return make_items(items, prefix=name)

        self.monkeypatch.setitem(DETECTORS, name, detect)
        return name

    def actor(self, name, *, fail_every=0, raises=None, hang=False, record_changes=False, outcome=None):
        async def act(ctx, items):
            self.calls.append(f"act:{name}")
            if hang:
                await asyncio.sleep(30)
            if raises is not None:
                raise raises
            if outcome is not None:
                return outcome
            processed = failed = 0
            for i, item in enumerate(items, start=1):
                if fail_every and i % fail_every == 0:
                    failed += 1
                    await ctx.log_action(item.item_id, "failed", error="boom")
                    continue
                if record_changes:
                    target = str(Path(settings.TEMP_CLEANUP_DIRS[0]) / item.item_id)
                    await ctx.record_change(
                        target,
                        undo=UndoInstruction(operation_kind=OperationKind.create_directory, target=target),
                    )
                await ctx.log_action(item.item_id, "processed")
                processed += 1
            return ActorOutcome(processed=processed, failed=failed)

        self.monkeypatch.setitem(ACTORS, name, act)
        return name


@pytest.fixture
def fake_tasks(monkeypatch):
    return FakeTasks(monkeypatch)


def descriptor(name, detector_ref, actor_ref=None, *, timeout=5.0, enabled=True) -> TaskDescriptor:
    return TaskDescriptor(
        name=name,
        enabled=enabled,
        detector_ref=detector_ref,
        actor_ref=actor_ref,
        timeout_seconds=timeout,
    )
