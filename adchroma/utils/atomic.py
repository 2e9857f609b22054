"""Snapshot writing helpers with durability guarantees."""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any


def atomic_write(path: Path, writer: Callable[[Path], None]) -> None:
    """Produce ``path`` atomically via ``writer``.

    ``writer`` receives a temporary path in the destination directory and must
    fully write it. The file is fsynced and moved into place with
    ``os.replace`` so readers only ever observe a complete snapshot.
    """
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        dir=str(destination.parent),
        prefix=destination.name,
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path: Path | None = Path(tmp_name)

    try:
        writer(tmp_path)
        with open(tmp_path, "rb+") as handle:
            os.fsync(handle.fileno())
        os.replace(tmp_path, destination)
        tmp_path = None
    finally:
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass


def atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    """Write ``payload`` to ``path`` atomically as JSON."""
    serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False)

    def _write(tmp_path: Path) -> None:
        tmp_path.write_text(serialized, encoding="utf-8")

    atomic_write(path, _write)
