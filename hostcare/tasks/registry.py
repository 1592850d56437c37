"""
Name to function registry for detectors and actors.

Catalog entries refer to detectors and actors by these names.
"""

from __future__ import annotations

from typing import Callable

from hostcare.tasks.contracts import ActFunc, DetectFunc

__all__ = (
    "ACTORS",
    "DETECTORS",
    "actor",
    "detector",
    "get_actor",
    "get_detector",
    "load_builtin_tasks",
)

DETECTORS: dict[str, DetectFunc] = {}
ACTORS: dict[str, ActFunc] = {}


def detector(name: str) -> Callable[[DetectFunc], DetectFunc]:
    def register(fn: DetectFunc) -> DetectFunc:
        if name in DETECTORS and DETECTORS[name] is not fn:
            raise ValueError(f"Detector '{name}' already registered")
        DETECTORS[name] = fn
        return fn

    return register


def actor(name: str) -> Callable[[ActFunc], ActFunc]:
    def register(fn: ActFunc) -> ActFunc:
        if name in ACTORS and ACTORS[name] is not fn:
            raise ValueError(f"Actor '{name}' already registered")
        ACTORS[name] = fn
        return fn

    return register


def load_builtin_tasks() -> None:
    """Import the built-in task modules so they register themselves."""
    import hostcare.tasks.builtin  # noqa: F401


def get_detector(ref: str) -> DetectFunc | None:
    load_builtin_tasks()
    return DETECTORS.get(ref)


def get_actor(ref: str) -> ActFunc | None:
    load_builtin_tasks()
    return ACTORS.get(ref)
