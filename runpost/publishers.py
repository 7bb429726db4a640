from __future__ import annotations

import logging
from typing import Any

import requests

from .config import Settings


logger = logging.getLogger(__name__)


def toot(base_url: str, token: str, text: str, *, session: Any = requests, timeout: int = 30) -> dict[str, Any]:
    response = session.post(
        f"{base_url}/statuses",
        headers={"Authorization": f"Bearer {token}"},
        data={"status": text},
        timeout=timeout,
    )
    response.raise_for_status()
    logger.info("Posted status to Mastodon.")
    return response.json()


def note(base_url: str, token: str, text: str, *, session: Any = requests, timeout: int = 30) -> dict[str, Any]:
    response = session.post(
        f"{base_url}/notes/create",
        json={"text": text, "i": token},
        timeout=timeout,
    )
    response.raise_for_status()
    logger.info("Posted note to Misskey.")
    return response.json()


def publish(settings: Settings, text: str, *, session: Any = requests) -> dict[str, Any]:
    if settings.post_target == "misskey":
        return note(
            str(settings.misskey_api_url),
            str(settings.misskey_access_token),
            text,
            session=session,
            timeout=settings.http_timeout_seconds,
        )
    return toot(
        str(settings.mastodon_api_url),
        str(settings.mastodon_access_token),
        text,
        session=session,
        timeout=settings.http_timeout_seconds,
    )
