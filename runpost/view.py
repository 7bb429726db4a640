from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from dateutil import parser as date_parser
from jinja2 import StrictUndefined, TemplateError
from jinja2.sandbox import SandboxedEnvironment

from .report import ActivityReport


logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"


def _format_date(raw: str) -> str:
    try:
        return date_parser.isoparse(raw).strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        return raw


def _format_elapsed(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


def pad_left(value: Any, width: int) -> str:
    return f"{value!s:>{int(width)}}"


def build_view_model(report: ActivityReport) -> dict[str, Any]:
    activity = report.activity
    distance = activity.distance or 0.0
    duration_in_min = activity.duration / 60.0 / 1000.0
    duration_per_km = duration_in_min / distance if distance > 0 else 0.0

    return {
        "start_time": _format_date(activity.start_time),
        "distance": f"{distance:.3f}",
        "duration_in_min": f"{duration_in_min:.3f}",
        "duration_per_km": f"{duration_per_km:.3f}",
        "calories": activity.calories,
        "heart_rate_average": report.heart_rate.average,
        "heart_rate_max": report.heart_rate.max,
        # One trackpoint is recorded per second, so counts / 60 are minutes.
        "heart_rate_zone_min_pairs": [
            (label, count // 60) for label, count in report.heart_rate.bucket_counts
        ],
        "splits": [
            {"km": number, "time": _format_elapsed(elapsed)}
            for number, elapsed in enumerate(report.splits, start=1)
        ],
    }


def _template_environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
        undefined=StrictUndefined,
    )
    env.filters["pad_left"] = pad_left
    return env


def _normalize_rendered_text(rendered: str) -> str:
    lines = [line.rstrip() for line in rendered.replace("\r\n", "\n").split("\n")]
    return "\n".join(lines).strip()


def template_path(template_dir: Path, template_name: str) -> Path:
    return template_dir / f"{template_name}{TEMPLATE_SUFFIX}"


def render_template_text(template_text: str, context: dict[str, Any]) -> dict[str, Any]:
    env = _template_environment()
    try:
        rendered = env.from_string(template_text).render(context)
    except TemplateError as exc:
        return {
            "ok": False,
            "error": str(exc),
            "description": None,
        }
    return {
        "ok": True,
        "error": None,
        "description": _normalize_rendered_text(rendered),
    }


def render_report(report: ActivityReport, template_dir: Path, template_name: str) -> dict[str, Any]:
    if report.activity.distance is None:
        logger.info("Activity %s has no distance; nothing to render.", report.activity.id)
        return {"ok": True, "error": None, "description": ""}

    path = template_path(template_dir, template_name)
    try:
        template_text = path.read_text(encoding="utf-8")
    except OSError as exc:
        return {
            "ok": False,
            "error": f"Failed to read template {path}: {exc}",
            "description": None,
        }
    return render_template_text(template_text, build_view_model(report))
