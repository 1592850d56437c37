"""
Task catalog loading.

A broken entry is skipped with a warning; only an unreadable catalog file
fails the load.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hostcare.core.config import settings
from hostcare.core.errors import CatalogError
from hostcare.core.log import logger
from hostcare.schema.catalog import TaskDescriptor
from hostcare.tasks.registry import get_actor, get_detector
from hostcare.util.base_dir import get_default_catalog_path

__all__ = ("load_catalog", "parse_catalog")


def load_catalog(path: str | Path | None = None) -> list[TaskDescriptor]:
    """
    Load the task catalog from YAML.

    Falls back to ``CATALOG_PATH`` and then to the catalog shipped with the
    package.
    """
    source = Path(path or settings.CATALOG_PATH or get_default_catalog_path())
    try:
        raw = yaml.safe_load(source.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"Cannot read catalog {source}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"Catalog {source} is not valid YAML: {exc}") from exc

    return parse_catalog(raw, source=str(source))


def parse_catalog(raw: Any, *, source: str = "<memory>") -> list[TaskDescriptor]:
    """Validate raw catalog data, keeping catalog order."""
    if isinstance(raw, dict):
        raw = raw.get("tasks")
    if not isinstance(raw, list):
        raise CatalogError(f"Catalog {source} must contain a list of tasks")

    catalog: list[TaskDescriptor] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            logger.warning(f"Catalog {source}: entry #{index} is not a mapping, skipped")
            continue

        try:
            descriptor = TaskDescriptor.model_validate(item)
        except ValidationError as exc:
            errors = "; ".join(f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors())
            logger.warning(f"Catalog {source}: entry #{index} is malformed ({errors}), skipped")
            continue

        if descriptor.name in seen:
            logger.warning(f"Catalog {source}: duplicate task '{descriptor.name}', skipped")
            continue
        if get_detector(descriptor.detector_ref) is None:
            logger.warning(
                f"Catalog {source}: task '{descriptor.name}' references unknown detector "
                f"'{descriptor.detector_ref}', skipped"
            )
            continue
        if descriptor.actor_ref is not None and get_actor(descriptor.actor_ref) is None:
            logger.warning(
                f"Catalog {source}: task '{descriptor.name}' references unknown actor "
                f"'{descriptor.actor_ref}', skipped"
            )
            continue

        seen.add(descriptor.name)
        catalog.append(descriptor)

    logger.info(
        f"Catalog {source}: {len(catalog)} tasks loaded "
        f"({sum(1 for d in catalog if d.enabled)} enabled)"
    )
    return catalog
