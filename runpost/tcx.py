from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from .errors import ParseError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Sample:
    index: int
    heart_rate: int
    cumulative_distance: float


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> list[ET.Element]:
    return [child for child in element if _local_name(child.tag) == name]


def _child(element: ET.Element, name: str) -> ET.Element | None:
    for child in element:
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(element: ET.Element, *path: str) -> str | None:
    current: ET.Element | None = element
    for name in path:
        if current is None:
            return None
        current = _child(current, name)
    if current is None or current.text is None:
        return None
    text = current.text.strip()
    return text or None


def _trackpoint_sample(trackpoint: ET.Element, index: int) -> Sample:
    heart_rate_raw = _child_text(trackpoint, "HeartRateBpm", "Value")
    distance_raw = _child_text(trackpoint, "DistanceMeters")
    if heart_rate_raw is None:
        raise ParseError(f"Trackpoint {index} has no heart rate value.")
    if distance_raw is None:
        raise ParseError(f"Trackpoint {index} has no distance value.")
    try:
        heart_rate = int(heart_rate_raw)
    except ValueError as exc:
        raise ParseError(f"Trackpoint {index} has invalid heart rate '{heart_rate_raw}'.") from exc
    try:
        distance = float(distance_raw)
    except ValueError as exc:
        raise ParseError(f"Trackpoint {index} has invalid distance '{distance_raw}'.") from exc
    return Sample(index=index, heart_rate=heart_rate, cumulative_distance=distance)


def parse(raw_document: str) -> list[Sample] | None:
    """Decode a TCX document into samples in document order.

    Returns None when the first activity carries no Lap element, meaning the
    tracker recorded no detail for it. An empty Lap yields an empty list.
    """
    try:
        root = ET.fromstring(raw_document)
    except ET.ParseError as exc:
        raise ParseError(f"Malformed activity log: {exc}") from exc

    activities = _child(root, "Activities")
    if activities is None:
        raise ParseError("Activity log has no Activities element.")
    activity = _child(activities, "Activity")
    if activity is None:
        raise ParseError("Activity log has no Activity element.")

    laps = _children(activity, "Lap")
    if not laps:
        logger.info("Activity log has no lap detail.")
        return None

    samples: list[Sample] = []
    for lap in laps:
        for track in _children(lap, "Track"):
            for trackpoint in _children(track, "Trackpoint"):
                samples.append(_trackpoint_sample(trackpoint, len(samples)))
    logger.debug("Parsed %s trackpoint(s) from %s lap(s).", len(samples), len(laps))
    return samples
