"""
Weighted prize selection over a wheel catalog.

Real prizes carry a configured probability weight (percent of 100). Decorative
"no win" segments share whatever the real prizes leave, equally:

    decorative_weight = max(0, 100 - sum(real weights)) / count(decorative)

Stock-controlled prizes with nothing left are removed before the weights are
computed, so their share flows to the decorative segments. With no decorative
segments the remainder stays unallocated and real weights behave as relative
weights. The draw never fails once an eligible segment exists: a value that
falls past the accumulated total (float drift, zero weights) resolves to the
last eligible segment.

Pure functions, no I/O. Pass a seeded random.Random for reproducible draws.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from prizewheel.logic.exceptions import NoEligiblePrizesError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.dal.models import Segment

TOTAL_PROBABILITY = 100.0


def eligible_segments(segments: Sequence[Segment]) -> list[Segment]:
    """Return segments that can be drawn, in catalog order."""
    return [s for s in segments if not s.is_exhausted]


def compute_weights(eligible: Sequence[Segment]) -> list[float]:
    """Compute draw weights for already-filtered segments, aligned by index."""
    real_total = sum(s.probability_weight for s in eligible if s.is_real_prize)
    decorative_count = sum(1 for s in eligible if not s.is_real_prize)
    decorative_weight = max(0.0, TOTAL_PROBABILITY - real_total) / decorative_count if decorative_count else 0.0
    return [s.probability_weight if s.is_real_prize else decorative_weight for s in eligible]


def pick_by_draw(eligible: Sequence[Segment], weights: Sequence[float], draw: float) -> Segment:
    """Walk cumulative weights and return the first segment whose total exceeds draw."""
    accumulated = 0.0
    for segment, weight in zip(eligible, weights, strict=True):
        accumulated += weight
        if draw < accumulated:
            return segment
    return eligible[-1]


def select_prize(segments: Sequence[Segment], rng: random.Random | None = None) -> Segment:
    """Draw one winning segment from the catalog.

    Raises NoEligiblePrizesError when every segment is excluded.
    """
    eligible = eligible_segments(segments)
    if not eligible:
        raise NoEligiblePrizesError("no eligible prizes: stocked prizes exhausted and no decorative segments")

    weights = compute_weights(eligible)
    total = sum(weights)
    rng = rng or random.Random()  # noqa: S311
    draw = rng.random() * total
    return pick_by_draw(eligible, weights, draw)
