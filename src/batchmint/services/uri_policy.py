"""Weighted random selection of metadata URIs."""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Mapping
from pathlib import Path

from batchmint.core.settings import settings

logger = logging.getLogger(__name__)


class WeightedURIPolicy:
    """Pick a URI with probability proportional to its configured weight."""

    def __init__(self, weights: Mapping[str, float], rng: random.Random | None = None) -> None:
        self._entries = [(uri, float(weight)) for uri, weight in weights.items() if weight > 0]
        self._total = sum(weight for _, weight in self._entries)
        self._rng = rng or random.Random()

    @property
    def weights(self) -> dict[str, float]:
        """Return a copy of the active distribution."""
        return dict(self._entries)

    def pick_uri(self) -> str:
        """Return one URI from the distribution.

        Raises:
            ValueError: If the distribution has no positively weighted entry.
        """
        if not self._entries:
            raise ValueError("URI distribution is empty")

        threshold = self._rng.random() * self._total
        cumulative = 0.0
        for uri, weight in self._entries:
            cumulative += weight
            if threshold < cumulative:
                return uri
        # Rounding can leave the threshold just past the last bucket.
        return self._entries[-1][0]


def load_uri_distribution(path: str | Path) -> dict[str, float]:
    """Read a ``{"uri": weight}`` JSON object; missing or empty files yield ``{}``."""
    source = Path(path)
    try:
        content = source.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("URI distribution file %s not found", source)
        return {}
    if not content.strip():
        return {}

    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError(f"{source} must contain a JSON object of uri -> weight")
    return {str(uri): float(weight) for uri, weight in data.items()}


def get_uri_policy() -> WeightedURIPolicy:
    """Return a policy built from the configured distribution file."""
    return WeightedURIPolicy(load_uri_distribution(settings.uri_distribution_path))
