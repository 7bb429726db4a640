from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .errors import EmptyInput
from .tcx import Sample


BUCKET_LOW = "<115"
BUCKET_MID = "-150"
BUCKET_HIGH = ">150"

SPLIT_METERS = 1000


@dataclass(frozen=True)
class HeartRateSummary:
    average: int
    max: int
    bucket_counts: list[tuple[str, int]] = field(default_factory=list)


SplitSummary = list[int]


def heart_rate_bucket(heart_rate: int) -> str:
    if heart_rate < 115:
        return BUCKET_LOW
    if heart_rate < 150:
        return BUCKET_MID
    return BUCKET_HIGH


def summarize_heart_rate(samples: Sequence[Sample]) -> HeartRateSummary:
    if not samples:
        raise EmptyInput("No samples to summarize.")

    heart_rates = [sample.heart_rate for sample in samples]
    # Truncated after float division: 380 / 3 -> 126.
    average = int(sum(heart_rates) / len(heart_rates))

    counts: dict[str, int] = {}
    for heart_rate in heart_rates:
        bucket = heart_rate_bucket(heart_rate)
        counts[bucket] = counts.get(bucket, 0) + 1

    return HeartRateSummary(
        average=average,
        max=max(heart_rates),
        bucket_counts=list(counts.items()),
    )


def is_split_boundary(distance: float) -> bool:
    return distance > 0 and distance % SPLIT_METERS == 0


def summarize_splits(samples: Sequence[Sample]) -> SplitSummary:
    # Samples are assumed evenly spaced in time, so ordinal gaps stand in for
    # elapsed time. Distances that never land on an exact kilometer yield [].
    splits: SplitSummary = []
    previous_index = -1
    for position, sample in enumerate(samples):
        if is_split_boundary(sample.cumulative_distance):
            splits.append(position - previous_index)
            previous_index = position
    return splits


def summarize(samples: Sequence[Sample]) -> tuple[HeartRateSummary, SplitSummary]:
    if not samples:
        raise EmptyInput("No samples to summarize.")
    return summarize_heart_rate(samples), summarize_splits(samples)


def empty_summaries() -> tuple[HeartRateSummary, SplitSummary]:
    return HeartRateSummary(average=0, max=0, bucket_counts=[]), []
