import tempfile
import unittest
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from runpost.config import Settings
from runpost.errors import AuthRequired, ParseError
from runpost.pipeline import run_once
from runpost.storage import read_json
from runpost.tokens import MemoryTokenStore, Token


FIXTURES = Path(__file__).resolve().parent / "fixtures"

ACTIVITIES = [
    {"logId": 3, "activityName": "Walk", "startTime": "2026-10-13T18:00:00.000+09:00", "duration": 1, "calories": 1},
    {
        "logId": 2,
        "activityName": "Run",
        "startTime": "2026-10-12T07:01:00.000+09:00",
        "distance": 2.0,
        "duration": 600_000,
        "calories": 150,
    },
]


class _FakeFitbit:
    def __init__(self, activities=None, log_text=None):
        self.activities = ACTIVITIES if activities is None else activities
        self.log_text = log_text or (FIXTURES / "activity_log.tcx").read_text(encoding="utf-8")
        self.calls = []

    def authorize(self, code):
        self.calls.append(("authorize", code))
        return {"access_token": "from-code", "refresh_token": "r", "expires_in": 3600}

    def refresh(self, refresh_token):
        self.calls.append(("refresh", refresh_token))
        return None

    def list_activities(self, after_date, token):
        self.calls.append(("list_activities", after_date, token))
        return self.activities

    def fetch_activity_log(self, log_id, token):
        self.calls.append(("fetch_activity_log", log_id, token))
        return self.log_text


def _settings(state_dir: str, **extra: str) -> Settings:
    values = {
        "FITBIT_CLIENT_ID": "id",
        "FITBIT_CLIENT_SECRET": "secret",
        "MASTODON_API_URL": "https://mastodon.test/api/v1",
        "MASTODON_ACCESS_TOKEN": "tok",
        "STATE_DIR": state_dir,
        **extra,
    }
    return Settings.from_env(getenv=values.get)


def _valid_store() -> MemoryTokenStore:
    return MemoryTokenStore(
        Token("stored-access", "stored-refresh", datetime.now(timezone.utc) + timedelta(hours=2))
    )


class TestRunOnce(unittest.TestCase):
    def test_preview_renders_latest_run_without_posting(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = _settings(tmpdir)
            client = _FakeFitbit()
            with patch("runpost.pipeline.publish") as publish_mock:
                result = run_once(settings, date(2026, 10, 1), preview=True, client=client, store=_valid_store())

            self.assertEqual(result["status"], "preview")
            self.assertEqual(result["activity_id"], 2)
            self.assertIn("avg 132 / max 160", result["description"])
            publish_mock.assert_not_called()
            self.assertIn(("fetch_activity_log", 2, "stored-access"), client.calls)

            snapshot = read_json(settings.latest_json_file)
            self.assertEqual(snapshot["report"]["splits"], [2, 2])
            self.assertEqual(snapshot["report"]["heart_rate_details"], [["<115", 1], ["-150", 1], [">150", 2]])

    def test_publish_posts_description(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = _settings(tmpdir)
            with patch("runpost.pipeline.publish") as publish_mock:
                result = run_once(settings, date(2026, 10, 1), client=_FakeFitbit(), store=_valid_store())
            self.assertEqual(result["status"], "posted")
            publish_mock.assert_called_once_with(settings, result["description"])

    def test_no_matching_activity_is_not_an_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = _FakeFitbit(activities=[ACTIVITIES[0]])
            result = run_once(_settings(tmpdir), date(2026, 10, 1), preview=True, client=client, store=_valid_store())
            self.assertEqual(result, {"status": "no_activity", "category": "Run"})
            self.assertFalse(any(call[0] == "fetch_activity_log" for call in client.calls))

    def test_absent_lap_still_reports(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = _FakeFitbit(log_text=(FIXTURES / "activity_log_no_lap.tcx").read_text(encoding="utf-8"))
            settings = _settings(tmpdir)
            result = run_once(settings, date(2026, 10, 1), preview=True, client=client, store=_valid_store())
            self.assertEqual(result["status"], "preview")
            report = read_json(settings.latest_json_file)["report"]
            self.assertEqual(report["heart_rate_average"], 0)
            self.assertEqual(report["heart_rate_max"], 0)
            self.assertEqual(report["heart_rate_details"], [])
            self.assertEqual(report["splits"], [])

    def test_malformed_log_raises_parse_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = _FakeFitbit(log_text="<TrainingCenterDatabase>")
            with self.assertRaises(ParseError), self.assertLogs("runpost.pipeline", level="ERROR") as logs:
                run_once(_settings(tmpdir), date(2026, 10, 1), preview=True, client=client, store=_valid_store())
            errors = [line for line in logs.output if line.startswith("ERROR:")]
            self.assertEqual(len(errors), 1)
            self.assertIn("Failed to parse activity log", errors[0])

    def test_missing_token_requires_authorization(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = _FakeFitbit()
            with self.assertRaises(AuthRequired):
                run_once(_settings(tmpdir), date(2026, 10, 1), preview=True, client=client, store=MemoryTokenStore())
            self.assertEqual(client.calls, [])

    def test_code_is_exchanged_before_fetching(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            client = _FakeFitbit()
            store = MemoryTokenStore()
            result = run_once(
                _settings(tmpdir),
                date(2026, 10, 1),
                preview=True,
                code="abc",
                client=client,
                store=store,
            )
            self.assertEqual(result["status"], "preview")
            self.assertEqual(client.calls[0], ("authorize", "abc"))
            self.assertEqual(store.token.access_token, "from-code")
            self.assertEqual(client.calls[1], ("list_activities", date(2026, 10, 1), "from-code"))

    def test_token_file_is_used_by_default(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = _settings(tmpdir)
            client = _FakeFitbit()
            run_once(settings, date(2026, 10, 1), preview=True, code="abc", client=client)
            self.assertEqual(read_json(settings.token_file)["access_token"], "from-code")

    def test_render_failure_is_reported(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = _settings(tmpdir, TEMPLATE_DIR=tmpdir, TEMPLATE_NAME="missing")
            with patch("runpost.pipeline.publish") as publish_mock:
                result = run_once(settings, date(2026, 10, 1), client=_FakeFitbit(), store=_valid_store())
            self.assertEqual(result["status"], "render_failed")
            publish_mock.assert_not_called()

    def test_activity_without_distance_is_not_posted(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            activities = [{"logId": 5, "activityName": "Run", "startTime": "x", "duration": 1, "calories": 1}]
            with patch("runpost.pipeline.publish") as publish_mock:
                result = run_once(
                    _settings(tmpdir),
                    date(2026, 10, 1),
                    client=_FakeFitbit(activities=activities),
                    store=_valid_store(),
                )
            self.assertEqual(result, {"status": "empty", "activity_id": 5})
            publish_mock.assert_not_called()


if __name__ == "__main__":
    unittest.main()
