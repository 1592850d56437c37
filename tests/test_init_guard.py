import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from hostcare.core import init_guard
from hostcare.core.errors import InitializationTimeout
from hostcare.core.init_guard import ensure_initialized, reset_initialization


def test_sequential_calls_return_same_paths(paths):
    assert ensure_initialized() is paths
    assert ensure_initialized() is paths
    assert init_guard._STATE.discoveries == 1


def test_storage_layout_created(paths):
    for d in (paths.root, paths.sessions_dir, paths.reports_dir, paths.quarantine_dir):
        assert d.is_dir()
    assert paths.hostname
    assert paths.exec_id


def test_concurrent_initialization_discovers_once(monkeypatch):
    reset_initialization()
    real_discover = init_guard._discover
    calls = []
    barrier = threading.Barrier(8)

    def counting_discover(storage_dir):
        calls.append(storage_dir)
        return real_discover(storage_dir)

    monkeypatch.setattr(init_guard, "_discover", counting_discover)

    def worker():
        barrier.wait()
        return ensure_initialized()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: worker(), range(8)))

    assert len(calls) == 1
    assert init_guard._STATE.discoveries == 1
    assert all(r is results[0] for r in results)


def test_lock_timeout_raises():
    reset_initialization()
    lock = init_guard._named_lock(init_guard._INIT_LOCK_NAME)
    lock.acquire()
    try:
        with pytest.raises(InitializationTimeout):
            ensure_initialized(timeout=0.05)
    finally:
        lock.release()

    assert init_guard._STATE.paths is None
    assert ensure_initialized() is not None


def test_reset_forces_rediscovery(paths):
    reset_initialization()
    again = ensure_initialized()
    assert again is not paths
    assert again.root == paths.root
    assert again.exec_id != paths.exec_id
