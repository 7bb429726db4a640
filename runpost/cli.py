from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from datetime import date, datetime

import requests

from .config import POST_TARGETS, Settings
from .errors import AuthRequired, ParseError, TokenRefreshFailed
from .fitbit import FitbitClient
from .pipeline import run_once


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_AUTH_REQUIRED = 2


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _parse_since(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as exc:
        raise argparse.ArgumentTypeError("since must be YYYY-MM-DD.") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runpost",
        description="Post a summary of the latest Fitbit run to Mastodon or Misskey.",
    )
    parser.add_argument("-s", "--since", type=_parse_since, required=True, help="Date to fetch from (YYYY-MM-DD).")
    parser.add_argument("--preview", action="store_true", help="Print the summary instead of posting it.")
    parser.add_argument("--code", default=None, help="Fitbit authorization code to exchange for a token.")
    parser.add_argument("--target", choices=POST_TARGETS, default=None, help="Where to post the summary.")
    parser.add_argument("--template", default=None, help="Template name to render (without .j2).")
    parser.add_argument("--category", default=None, help="Activity category to report on.")
    return parser


def _apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.target:
        overrides["post_target"] = args.target
    if args.template:
        overrides["template_name"] = args.template
    if args.category:
        overrides["activity_category"] = args.category
    if not overrides:
        return settings
    return dataclasses.replace(settings, **overrides)


def _is_interactive() -> bool:
    return sys.stdin is not None and sys.stdin.isatty()


def _prompt_for_code(settings: Settings) -> str | None:
    print(f"Open this URL to authorize access:\n{FitbitClient(settings).authorization_url()}")
    if not _is_interactive():
        print("Then rerun with --code <authorization code>.")
        return None
    code = input("Enter code > ").strip()
    return code or None


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = _apply_overrides(Settings.from_env(), args)
    _configure_logging(settings.log_level)

    code = args.code
    try:
        try:
            result = run_once(settings, args.since, preview=args.preview, code=code)
        except AuthRequired as exc:
            logger.warning("%s", exc)
            code = _prompt_for_code(settings)
            if code is None:
                return EXIT_AUTH_REQUIRED
            result = run_once(settings, args.since, preview=args.preview, code=code)
    except AuthRequired as exc:
        logger.error("%s", exc)
        return EXIT_AUTH_REQUIRED
    except ValueError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE
    except ParseError:
        # Already logged with the activity id by run_once.
        return EXIT_FAILURE
    except TokenRefreshFailed:
        logger.exception("Run aborted.")
        return EXIT_FAILURE
    except requests.RequestException:
        logger.exception("HTTP request failed.")
        return EXIT_FAILURE

    status = result.get("status")
    if status == "no_activity":
        print("No run activity found.")
    elif status == "preview":
        print("==== PREVIEW MODE ====")
        print(result["description"])
    elif status == "render_failed":
        print(f"Failed to create text. {result.get('error')}")
        return EXIT_FAILURE
    logger.info("Run result: %s", status)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
