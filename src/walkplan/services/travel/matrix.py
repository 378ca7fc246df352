"""Concurrent pairwise travel-time matrix built on top of the provider."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from ...models.domain import Confidence, Location
from .provider import TravelTimeProvider

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TravelMatrix:
    """Symmetric travel times between stops, in whole seconds."""

    durations: list[list[int]]
    distances: list[list[int]]
    confidence: Confidence

    def __len__(self) -> int:
        return len(self.durations)


def build_travel_matrix(
    locations: Sequence[Location],
    provider: TravelTimeProvider,
    as_of: datetime,
    max_workers: int = 8,
) -> TravelMatrix:
    """Look up every unordered pair concurrently and mirror it into a square matrix.

    Lookups complete in any order but land at fixed indices, so the result does not
    depend on scheduling. If anything interrupts construction, lookups that have not
    started yet are cancelled before the error propagates.
    """
    size = len(locations)
    durations = [[0] * size for _ in range(size)]
    distances = [[0] * size for _ in range(size)]
    pairs = [(i, j) for i in range(size) for j in range(i + 1, size)]
    if not pairs:
        return TravelMatrix(durations, distances, Confidence.HIGH)

    start_time = time.time()
    confidences: list[Confidence] = []
    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(pairs))))
    try:
        future_to_pair = {
            executor.submit(provider.estimate, locations[i], locations[j], as_of): (i, j) for i, j in pairs
        }
        for future in as_completed(future_to_pair):
            i, j = future_to_pair[future]
            estimate = future.result()
            seconds = int(estimate.duration.total_seconds())
            durations[i][j] = durations[j][i] = seconds
            distances[i][j] = distances[j][i] = estimate.distance_meters
            confidences.append(estimate.confidence)
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise
    executor.shutdown(wait=True)

    confidence = Confidence.lowest(*confidences)
    logger.info(
        f"Travel matrix for {size} stops: {len(pairs)} lookups in {time.time() - start_time:.2f}s "
        f"(lowest confidence {confidence.value})"
    )
    return TravelMatrix(durations, distances, confidence)
