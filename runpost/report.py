from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from .activity import Activity
from .errors import EmptyInput
from .summary import HeartRateSummary, SplitSummary, empty_summaries, summarize
from .tcx import Sample


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivityReport:
    activity: Activity
    heart_rate: HeartRateSummary
    splits: SplitSummary = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "activity_id": self.activity.id,
            "category": self.activity.category,
            "start_time": self.activity.start_time,
            "distance": self.activity.distance,
            "duration": self.activity.duration,
            "calories": self.activity.calories,
            "heart_rate_average": self.heart_rate.average,
            "heart_rate_max": self.heart_rate.max,
            "heart_rate_details": [[label, count] for label, count in self.heart_rate.bucket_counts],
            "splits": list(self.splits),
        }


def build_report(activity: Activity, samples: Sequence[Sample] | None) -> ActivityReport:
    if samples is None:
        logger.info("Activity %s has no lap detail; reporting zero heart-rate summary.", activity.id)
        heart_rate, splits = empty_summaries()
        return ActivityReport(activity=activity, heart_rate=heart_rate, splits=splits)

    try:
        heart_rate, splits = summarize(samples)
    except EmptyInput:
        logger.info("Activity %s has no trackpoints; reporting zero heart-rate summary.", activity.id)
        heart_rate, splits = empty_summaries()
    return ActivityReport(activity=activity, heart_rate=heart_rate, splits=splits)
