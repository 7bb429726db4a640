from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from .activity import Activity, select_latest
from .config import Settings
from .errors import ActivityNotFound, ParseError
from .fitbit import FitbitClient
from .publishers import publish
from .report import build_report
from .storage import write_json
from .tcx import parse
from .tokens import FileTokenStore, TokenManager, TokenStore
from .view import render_report


logger = logging.getLogger(__name__)


def run_once(
    settings: Settings,
    since: date,
    *,
    preview: bool = False,
    code: str | None = None,
    client: FitbitClient | None = None,
    store: TokenStore | None = None,
) -> dict[str, Any]:
    settings.validate(publish=not preview)
    settings.ensure_state_paths()

    client = client or FitbitClient(settings)
    manager = TokenManager(store or FileTokenStore(settings.token_file), client)

    if code:
        manager.exchange_code(code)
    token = manager.get_valid_token()

    payloads = client.list_activities(since, token.access_token)
    activities = [Activity.from_api(payload) for payload in payloads]
    logger.info("Fetched %s activities since %s.", len(activities), since.isoformat())
    try:
        activity = select_latest(activities, settings.activity_category)
    except ActivityNotFound as exc:
        logger.info("%s", exc)
        return {"status": "no_activity", "category": settings.activity_category}

    raw_log = client.fetch_activity_log(activity.id, token.access_token)
    try:
        samples = parse(raw_log)
    except ParseError as exc:
        logger.error("Failed to parse activity log %s: %s", activity.id, exc)
        raise

    report = build_report(activity, samples)
    render_result = render_report(report, settings.template_dir, settings.template_name)
    write_json(
        settings.latest_json_file,
        {
            "generated_at_utc": datetime.now(timezone.utc).isoformat(),
            "report": report.to_dict(),
            "description": render_result.get("description"),
            "render_error": render_result.get("error"),
        },
    )

    if not render_result["ok"]:
        logger.error("Template render failed: %s", render_result.get("error"))
        return {"status": "render_failed", "activity_id": activity.id, "error": render_result.get("error")}

    description = str(render_result["description"] or "")
    if not description:
        logger.info("Activity %s produced an empty description; nothing to post.", activity.id)
        return {"status": "empty", "activity_id": activity.id}

    if preview:
        return {"status": "preview", "activity_id": activity.id, "description": description}

    publish(settings, description)
    logger.info("Activity %s posted to %s.", activity.id, settings.post_target)
    return {"status": "posted", "activity_id": activity.id, "description": description}
