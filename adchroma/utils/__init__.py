"""Utility modules for common operations."""

from adchroma.utils.atomic import atomic_write, atomic_write_json
from adchroma.utils.paths import ensure_dir, get_xdg_data_home, remove_tree

__all__ = [
    "atomic_write",
    "atomic_write_json",
    "ensure_dir",
    "get_xdg_data_home",
    "remove_tree",
]
