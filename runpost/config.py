from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv


load_dotenv()


EnvGetter = Callable[[str], str | None]

POST_TARGETS = ("mastodon", "misskey")
BUNDLED_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


def _str_env(*names: str, default: str = "", getenv: EnvGetter = os.getenv) -> str:
    for name in names:
        value = getenv(name)
        if value is not None:
            return value.strip()
    return default


def _optional_str_env(*names: str, getenv: EnvGetter = os.getenv) -> str | None:
    value = _str_env(*names, default="", getenv=getenv)
    return value or None


def _int_env(
    name: str,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
    *,
    getenv: EnvGetter = os.getenv,
) -> int:
    value = getenv(name)
    if value is None:
        parsed = default
    else:
        try:
            parsed = int(value.strip())
        except ValueError:
            parsed = default

    if minimum is not None and parsed < minimum:
        parsed = minimum
    if maximum is not None and parsed > maximum:
        parsed = maximum
    return parsed


@dataclass(frozen=True)
class Settings:
    fitbit_api_url: str
    fitbit_auth_url: str
    fitbit_client_id: str
    fitbit_client_secret: str
    fitbit_redirect_uri: str | None

    mastodon_api_url: str | None
    mastodon_access_token: str | None
    misskey_api_url: str | None
    misskey_access_token: str | None

    post_target: str
    activity_category: str
    template_dir: Path
    template_name: str
    http_timeout_seconds: int
    log_level: str

    state_dir: Path
    token_file: Path
    latest_json_file: Path

    @classmethod
    def from_env(cls, *, getenv: EnvGetter = os.getenv) -> "Settings":
        state_dir = Path(_str_env("STATE_DIR", default="state", getenv=getenv) or "state").resolve()
        token_file = state_dir / (_str_env("TOKEN_FILE", default="credentials.json", getenv=getenv) or "credentials.json")
        latest_json_file = state_dir / (
            _str_env("LATEST_JSON_FILE", default="latest_report.json", getenv=getenv) or "latest_report.json"
        )
        template_dir_raw = _optional_str_env("TEMPLATE_DIR", getenv=getenv)
        template_dir = Path(template_dir_raw).resolve() if template_dir_raw else BUNDLED_TEMPLATE_DIR

        post_target = _str_env("POST_TARGET", default="mastodon", getenv=getenv).lower() or "mastodon"

        return cls(
            fitbit_api_url=_str_env("FITBIT_API_URL", default="https://api.fitbit.com", getenv=getenv).rstrip("/"),
            fitbit_auth_url=_str_env(
                "FITBIT_AUTH_URL",
                default="https://www.fitbit.com/oauth2/authorize",
                getenv=getenv,
            ),
            fitbit_client_id=_str_env("FITBIT_CLIENT_ID", getenv=getenv),
            fitbit_client_secret=_str_env("FITBIT_CLIENT_SECRET", getenv=getenv),
            fitbit_redirect_uri=_optional_str_env("FITBIT_REDIRECT_URI", getenv=getenv),
            mastodon_api_url=(_optional_str_env("MASTODON_API_URL", getenv=getenv) or "").rstrip("/") or None,
            mastodon_access_token=_optional_str_env("MASTODON_ACCESS_TOKEN", getenv=getenv),
            misskey_api_url=(_optional_str_env("MISSKEY_API_URL", getenv=getenv) or "").rstrip("/") or None,
            misskey_access_token=_optional_str_env("MISSKEY_ACCESS_TOKEN", getenv=getenv),
            post_target=post_target,
            activity_category=_str_env("ACTIVITY_CATEGORY", default="Run", getenv=getenv) or "Run",
            template_dir=template_dir,
            template_name=_str_env("TEMPLATE_NAME", default="default", getenv=getenv) or "default",
            http_timeout_seconds=_int_env("HTTP_TIMEOUT_SECONDS", 30, minimum=5, maximum=300, getenv=getenv),
            log_level=_str_env("LOG_LEVEL", default="INFO", getenv=getenv).upper() or "INFO",
            state_dir=state_dir,
            token_file=token_file,
            latest_json_file=latest_json_file,
        )

    def validate(self, *, publish: bool = True) -> None:
        missing = []
        if not self.fitbit_client_id:
            missing.append("FITBIT_CLIENT_ID")
        if not self.fitbit_client_secret:
            missing.append("FITBIT_CLIENT_SECRET")
        if self.post_target not in POST_TARGETS:
            raise ValueError(
                f"Invalid POST_TARGET '{self.post_target}'. Expected one of: {', '.join(POST_TARGETS)}."
            )
        if publish and self.post_target == "mastodon":
            if not self.mastodon_api_url:
                missing.append("MASTODON_API_URL")
            if not self.mastodon_access_token:
                missing.append("MASTODON_ACCESS_TOKEN")
        if publish and self.post_target == "misskey":
            if not self.misskey_api_url:
                missing.append("MISSKEY_API_URL")
            if not self.misskey_access_token:
                missing.append("MISSKEY_ACCESS_TOKEN")
        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required environment variables: {missing_str}")

    def ensure_state_paths(self) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
