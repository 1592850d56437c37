import importlib.resources
from functools import cache
from pathlib import Path

__all__ = ("get_default_catalog_path", "get_module_root")


@cache
def get_module_root(module_name: str) -> Path:
    """
    Get the root directory of a given module.

    Args:
        module_name (str): The name of the module.

    Returns:
        Module root directory as a pathlib.Path object.
    """

    return Path(str(importlib.resources.files(module_name)))


def get_default_catalog_path() -> Path:
    """Path of the catalog shipped inside the package."""
    return get_module_root("hostcare.tasks") / "catalog.yaml"
