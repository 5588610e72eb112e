"""Rule tables for handicap adjustment and championship scoring."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Tuple

# Bundled settings live inside the package under ``data``.
DATA_DIR = Path(__file__).resolve().parent / "data"

SETTINGS_ENV_VAR = "BUSHRUN_SETTINGS_FILE"


def settings_path() -> Path:
    """Return the settings file, honouring ``BUSHRUN_SETTINGS_FILE``."""
    override = os.environ.get(SETTINGS_ENV_VAR)
    if override:
        return Path(override)
    return DATA_DIR / "settings.json"


def load_settings(path: Path | str | None = None) -> Dict[str, Any]:
    with Path(path or settings_path()).open() as f:
        return json.load(f)


def build_lookup(entries: List[Dict[str, Any]], key_field: str, value_field: str) -> Tuple[Dict[int, Any], Any]:
    """Split a rank table into ``{rank: value}`` and its catch-all value.

    The catch-all row is keyed ``default_or_higher`` and covers every rank
    not listed; tables without one fall back to 0.
    """
    by_rank = {int(row[key_field]): row[value_field] for row in entries if isinstance(row[key_field], int)}
    fallback = next(
        (row[value_field] for row in entries if row[key_field] == "default_or_higher"),
        0.0,
    )
    return by_rank, fallback


__all__ = ["DATA_DIR", "SETTINGS_ENV_VAR", "build_lookup", "load_settings", "settings_path"]
