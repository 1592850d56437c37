"""Built-in maintenance tasks. Importing this package registers them."""

from hostcare.tasks.builtin import disk_space, empty_dirs, temp_files

__all__ = ("disk_space", "empty_dirs", "temp_files")
