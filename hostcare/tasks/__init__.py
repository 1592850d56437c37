"""Task catalog, contracts, and the detector/actor registry."""

from hostcare.tasks.catalog import load_catalog, parse_catalog
from hostcare.tasks.contracts import ActContext, ActorOutcome, DetectContext
from hostcare.tasks.registry import actor, detector

__all__ = (
    "ActContext",
    "ActorOutcome",
    "DetectContext",
    "actor",
    "detector",
    "load_catalog",
    "parse_catalog",
)
