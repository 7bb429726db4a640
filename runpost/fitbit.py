from __future__ import annotations

import logging
from datetime import date
from typing import Any
from urllib.parse import urlencode

import requests

from .config import Settings
from .errors import TokenRefreshFailed


logger = logging.getLogger(__name__)

ACTIVITY_LIST_LIMIT = 100
AUTH_SCOPES = ("activity", "heartrate")
REJECTED_STATUS_CODES = {400}


class FitbitClient:
    def __init__(self, settings: Settings, session: requests.Session | None = None):
        self.base_url = settings.fitbit_api_url
        self.auth_url = settings.fitbit_auth_url
        self.client_id = settings.fitbit_client_id
        self.client_secret = settings.fitbit_client_secret
        self.redirect_uri = settings.fitbit_redirect_uri
        self.timeout = settings.http_timeout_seconds
        self.session = session or requests.Session()

    def authorization_url(self) -> str:
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "scope": " ".join(AUTH_SCOPES),
        }
        if self.redirect_uri:
            params["redirect_uri"] = self.redirect_uri
        return f"{self.auth_url}?{urlencode(params)}"

    def _token_request(self, form: dict[str, str]) -> requests.Response:
        return self.session.post(
            f"{self.base_url}/oauth2/token",
            data={"client_id": self.client_id, **form},
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout,
        )

    def authorize(self, code: str) -> dict[str, Any]:
        form = {"grant_type": "authorization_code", "code": code}
        if self.redirect_uri:
            form["redirect_uri"] = self.redirect_uri
        response = self._token_request(form)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Fitbit token response is not a JSON object.")
        logger.info("Fitbit authorization code exchanged.")
        return payload

    def refresh(self, refresh_token: str) -> dict[str, Any] | None:
        try:
            response = self._token_request(
                {"grant_type": "refresh_token", "refresh_token": refresh_token}
            )
        except requests.RequestException as exc:
            raise TokenRefreshFailed(f"Fitbit token refresh failed: {exc}") from exc

        if response.status_code in REJECTED_STATUS_CODES:
            logger.warning("Fitbit rejected token refresh (HTTP %s).", response.status_code)
            return None
        try:
            response.raise_for_status()
            payload = response.json()
        except (requests.HTTPError, ValueError) as exc:
            raise TokenRefreshFailed(f"Fitbit token refresh failed: {exc}") from exc
        if not isinstance(payload, dict):
            raise TokenRefreshFailed("Fitbit token refresh returned a non-object body.")
        return payload

    def _get(self, path: str, token: str, *, params: dict[str, Any] | None = None) -> requests.Response:
        response = self.session.get(
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bearer {token}"},
            params=params,
            timeout=self.timeout,
        )
        response.raise_for_status()
        return response

    def list_activities(self, after_date: date, token: str) -> list[dict[str, Any]]:
        response = self._get(
            "/1/user/-/activities/list.json",
            token,
            params={
                "afterDate": after_date.strftime("%Y-%m-%d"),
                "sort": "desc",
                "offset": 0,
                "limit": ACTIVITY_LIST_LIMIT,
            },
        )
        payload = response.json()
        activities = payload.get("activities") if isinstance(payload, dict) else None
        if not isinstance(activities, list):
            return []
        return activities

    def fetch_activity_log(self, log_id: int | str, token: str) -> str:
        response = self._get(f"/1/user/-/activities/{log_id}.tcx", token)
        return response.text
