"""
auth/storage.py -- Whole-file JSON persistence helpers.

Both auth records (credential and session map) are small JSON documents that
are always rewritten in full. Writes go to a temp file in the same directory
first, so a crash mid-write never leaves a truncated record behind:

  write_json()        temp file + os.replace    -- unconditional overwrite
  create_json()       temp file + os.link       -- atomic create-if-absent

os.link fails with FileExistsError when the target already exists, which
gives create_json() the same "exactly one winner" property as the
IntegrityError-on-INSERT pattern in a database-backed user store.

read_json() returns None for a missing file and raises ValueError for a
corrupt one; callers decide whether corruption means "absent" or an error.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Optional


def read_json(path: Path) -> Optional[Any]:
    """Return the decoded document, or None if the file does not exist."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return json.loads(raw)


def _write_temp(path: Path, data: Any, indent: Optional[int]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=indent)
            fh.flush()
            os.fsync(fh.fileno())
    except BaseException:
        os.unlink(tmp_name)
        raise
    return Path(tmp_name)


def write_json(path: Path, data: Any, indent: Optional[int] = None) -> None:
    """Atomically replace ``path`` with ``data``. Parent dirs are created."""
    tmp = _write_temp(path, data, indent)
    try:
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def create_json(path: Path, data: Any, indent: Optional[int] = None) -> None:
    """Write ``data`` to ``path`` only if ``path`` does not exist yet.

    Raises FileExistsError if another writer got there first. The temp file
    is always removed; on success the record survives under its final name.
    """
    tmp = _write_temp(path, data, indent)
    try:
        os.link(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)
