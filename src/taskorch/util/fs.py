"""Filesystem helpers for catalog and fixture reads and report writes."""

from __future__ import annotations

import os
import stat
from contextlib import suppress
from pathlib import Path


def plain_file_problem(path: Path) -> str | None:
    """Why ``path`` cannot be read as a catalog or fixture, or None when it can.

    Symlinks are refused rather than followed.
    """
    try:
        mode = path.lstat().st_mode
    except FileNotFoundError:
        return "not found"
    except OSError as exc:
        return f"not accessible ({exc.strerror or exc})"
    if stat.S_ISLNK(mode):
        return "must not be a symlink"
    if not stat.S_ISREG(mode):
        return "not a regular file"
    return None


def ensure_directory(path: Path) -> None:
    if path.is_symlink():
        raise OSError(f"report directory must not be a symlink: {path}")
    path.mkdir(parents=True, exist_ok=True)
    if not path.is_dir():
        raise OSError(f"report path is not a directory: {path}")


def write_text_atomic(path: Path, payload: str) -> None:
    """Write to ``<name>.tmp`` beside the target, fsync, then rename over it."""
    tmp_path = path.with_name(path.name + ".tmp")
    flags = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_NOFOLLOW", 0)
    fd = os.open(tmp_path, flags, 0o644)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as out:
            out.write(payload)
            out.flush()
            os.fsync(out.fileno())
        os.replace(tmp_path, path)
    except OSError:
        with suppress(OSError):
            tmp_path.unlink(missing_ok=True)
        raise
