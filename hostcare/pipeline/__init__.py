"""Log normalization pipeline and canonical report."""

from hostcare.pipeline.normalizer import normalize, normalize_session
from hostcare.pipeline.report import generate_report

__all__ = (
    "generate_report",
    "normalize",
    "normalize_session",
)
