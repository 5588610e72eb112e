"""Per-distance podiums and finisher lists for display and export."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from .runners import DISTANCE_5K, DISTANCE_10K


def race_results(runners: Iterable[Dict[str, Any]], distance: str) -> Dict[str, Any]:
    finishers: List[Dict[str, Any]] = [
        r for r in runners if r.get("distance") == distance and r.get("finish_time") is not None
    ]
    finishers.sort(key=lambda r: r["finish_time"])
    return {
        "distance": distance,
        "podium": {
            "first": finishers[0] if len(finishers) > 0 else None,
            "second": finishers[1] if len(finishers) > 1 else None,
            "third": finishers[2] if len(finishers) > 2 else None,
        },
        "all_finishers": finishers,
    }


def aggregate_results(runners: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Group runners with a finish time into 5 km and 10 km results."""
    runners = list(runners)
    return {
        "fiveKm": race_results(runners, DISTANCE_5K),
        "tenKm": race_results(runners, DISTANCE_10K),
    }


__all__ = ["aggregate_results", "race_results"]
