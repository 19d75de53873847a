"""
Utilities for loading and applying scorer multipliers.

Each signal scorer's confidence is multiplied by a per-method multiplier
before blending. Defaults come from ``SCORER_WEIGHTS`` in config; a JSON file
can override individual methods for tuning without touching scoring logic.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .config import SCORER_WEIGHTS, SCORER_WEIGHTS_PATH

logger = logging.getLogger(__name__)

# Bound multipliers to avoid one method drowning out every other signal
MIN_MULTIPLIER = 0.0
MAX_MULTIPLIER = 10.0


def _clamp_multiplier(value: float) -> float:
    return max(MIN_MULTIPLIER, min(MAX_MULTIPLIER, value))


@dataclass
class ScorerWeights:
    """Method name -> multiplier table."""

    multipliers: dict[str, float] = field(default_factory=lambda: dict(SCORER_WEIGHTS))
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Fill missing methods with defaults and clamp the rest."""
        normalized = dict(SCORER_WEIGHTS)
        for method, value in (self.multipliers or {}).items():
            key = str(method).lower()
            try:
                normalized[key] = _clamp_multiplier(float(value))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid multiplier for '{method}': {value!r}")
        self.multipliers = normalized

    def factor(self, method: str) -> float:
        """Multiplier for a scorer method; unknown methods are neutral (1.0)."""
        return self.multipliers.get(method.lower(), 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": self.metadata,
            "multipliers": self.multipliers,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ScorerWeights":
        return cls(
            multipliers=dict(payload.get("multipliers", {})),
            metadata=payload.get("metadata", {}),
        )


def load_scorer_weights(path: str | Path | None = None) -> ScorerWeights | None:
    """Load multipliers from disk; return None if missing or invalid."""
    weight_path = Path(path) if path else SCORER_WEIGHTS_PATH
    if not weight_path.exists():
        logger.debug("Scorer weights file not found at %s; using defaults", weight_path)
        return None

    try:
        return ScorerWeights.from_dict(json.loads(weight_path.read_text()))
    except (OSError, ValueError, AttributeError) as exc:
        logger.warning("Failed to load scorer weights from %s: %s", weight_path, exc)
        return None


def save_scorer_weights(weights: ScorerWeights, path: str | Path | None = None) -> Path:
    """Persist multipliers to disk."""
    weight_path = Path(path) if path else SCORER_WEIGHTS_PATH
    weight_path.parent.mkdir(parents=True, exist_ok=True)
    weight_path.write_text(json.dumps(weights.to_dict(), indent=2))
    return weight_path
