"""Path utilities for directory and file operations."""

from __future__ import annotations

import os
import shutil
from pathlib import Path


def ensure_dir(path: Path) -> Path:
    """Ensure directory exists, creating if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_xdg_data_home() -> Path:
    """Get XDG_DATA_HOME directory, defaulting to ~/.local/share."""
    xdg_data = os.getenv("XDG_DATA_HOME")
    if xdg_data:
        return Path(xdg_data)
    return Path.home() / ".local" / "share"


def remove_tree(path: Path) -> bool:
    """Delete ``path`` recursively, returning False when it did not exist."""
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
