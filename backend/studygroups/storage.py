"""Helpers for storing files uploaded to study groups."""

from __future__ import annotations

import re
from pathlib import Path
from uuid import uuid4

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def validate_upload_filename(filename: str) -> None:
    """Raise ValueError for empty, overly long or path-like filenames."""
    if not filename or len(filename) > 200:
        raise ValueError("invalid filename")
    if "/" in filename or "\\" in filename or filename in (".", ".."):
        raise ValueError("invalid filename path")


def _safe_name(filename: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", filename).strip("._")
    return cleaned[:100] or "upload"


def save_upload(root: Path, filename: str, payload: bytes) -> Path:
    """Write `payload` under `root` and return the stored path.

    Each upload gets a random prefix so two files with the same name
    never overwrite each other.
    """
    root = root.expanduser().resolve()
    root.mkdir(parents=True, exist_ok=True)
    target = root / f"{uuid4().hex}_{_safe_name(filename)}"
    target.write_bytes(payload)
    return target
