"""General-purpose helpers for deterministic extraction runs."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any


def stable_id(prefix: str, *parts: str, length: int = 12) -> str:
    """Deterministic identifier derived from ``parts``."""

    digest = hashlib.sha1("\x1f".join(parts).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:length]}"


def ensure_directory(path: Path | str) -> Path:
    """Ensure that a directory exists and return the resolved Path."""

    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def serialize_json(data: Any, path: Path | str) -> Path:
    """Write ``data`` as UTF-8 JSON with stable key ordering."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(data, handle, ensure_ascii=False, indent=2, sort_keys=True)
        handle.write("\n")
    return target


__all__ = ["stable_id", "ensure_directory", "serialize_json"]
