"""
Integration tests for the usage report orchestrator and CLI.
Runs the full pipeline against mocked API clients and against the
FastAPI mock of the PYLON endpoints.
"""

import unittest
import io
import os
import sys
import tempfile
from datetime import datetime
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pandas as pd
from fastapi.testclient import TestClient
from pydantic import ValidationError

from billing_period import calculate_billing_window, fixed_offset
from config import ReporterConfig
from error_handling import APIError, AnalysisError
from mock_api import app
from mock_data import MOCK_INDEXES
from models import Index
from usage_report import build_parser, main, resolve_config, run_usage_report

DAY = 24 * 60 * 60
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=fixed_offset(-8))


def make_client(indexes, identities, analysis_by_id):
    client = MagicMock()
    client.list_indexes.return_value = {"count": len(indexes), "page": 1, "pages": 1, "per_page": 1000, "subscriptions": indexes}
    client.list_identities.return_value = {"count": len(identities), "identities": identities}

    def analyze(filter, parameters, hash, start, end, index_id):
        return analysis_by_id[index_id]

    client.for_identity.return_value.analyze.side_effect = analyze
    return client


class TestResolveConfig(unittest.TestCase):
    """Tests for CLI argument resolution."""

    def _args(self, *argv):
        return build_parser().parse_args(list(argv))

    def test_positional_arguments(self):
        config = resolve_config(self._args("acme", "key", "15"))
        self.assertEqual((config.username, config.api_key, config.billing_period_start), ("acme", "key", 15))

    def test_billing_start_defaults_to_one(self):
        config = resolve_config(self._args("acme", "key"))
        self.assertEqual(config.billing_period_start, 1)

    def test_out_of_range_billing_start_rejected(self):
        with self.assertRaises(ValidationError):
            resolve_config(self._args("acme", "key", "0"))

    def test_utc_offset_option(self):
        config = resolve_config(self._args("acme", "key", "--utc-offset", "0"))
        self.assertEqual(config.utc_offset_hours, 0)

    @patch('usage_report.select_account')
    def test_stored_account_used_without_arguments(self, mock_select):
        mock_select.return_value = MagicMock(username="stored", api_key="skey", billing_start=None)

        config = resolve_config(self._args("--account", "prod", "--accounts-file", "/tmp/a.json"))

        mock_select.assert_called_once_with("prod", "/tmp/a.json")
        self.assertEqual(config.username, "stored")
        self.assertEqual(config.billing_period_start, 1)

    @patch('usage_report.select_account')
    def test_stored_billing_start_used(self, mock_select):
        mock_select.return_value = MagicMock(username="stored", api_key="skey", billing_start=28)
        config = resolve_config(self._args())
        self.assertEqual(config.billing_period_start, 28)


class TestMain(unittest.TestCase):
    """Tests for the CLI entry point."""

    @patch('usage_report.run_usage_report')
    @patch('usage_report.setup_logging')
    def test_main_runs_report(self, mock_logging, mock_run):
        main(["acme", "key", "10", "--output-csv", "out.csv", "--log-file", "x.log"])

        mock_logging.assert_called_once_with("x.log")
        config = mock_run.call_args.args[0]
        self.assertIsInstance(config, ReporterConfig)
        self.assertEqual(config.billing_period_start, 10)
        self.assertEqual(mock_run.call_args.kwargs["output_csv"], "out.csv")

    @patch('usage_report.run_usage_report')
    @patch('usage_report.setup_logging')
    def test_username_without_key_is_usage_error(self, mock_logging, mock_run):
        with patch('sys.stderr', new=io.StringIO()):
            with self.assertRaises(SystemExit):
                main(["acme"])
        mock_run.assert_not_called()


class TestRunUsageReport(unittest.TestCase):
    """End-to-end tests with a mocked client."""

    def setUp(self):
        self.config = ReporterConfig("acme", "account_key", billing_period_start=1)
        self.t = calculate_billing_window(1, now=NOW).start_timestamp
        self.indexes = [
            {"id": "new", "identity_id": "i1", "status": "running", "start": self.t + DAY, "end": None, "volume": 5000, "name": "New"},
            {"id": "old", "identity_id": "i1", "status": "running", "start": self.t - 60 * DAY, "volume": 10 ** 7, "name": "Old"},
            {"id": "quiet", "identity_id": "i2", "status": "running", "start": self.t - 5 * DAY, "volume": 900, "name": "Quiet"},
            {"id": "gone", "identity_id": "i2", "status": "stopped", "start": self.t - 90 * DAY, "end": self.t - DAY, "volume": 77, "name": "Gone"},
        ]
        self.identities = [
            {"id": "i1", "label": "Team One", "api_key": "k1"},
            {"id": "i2", "label": "Team Two", "api_key": "k2"},
        ]
        self.analysis = {
            "old": {"interactions": 250000, "unique_authors": 9000, "analysis": {"redacted": False}},
            "quiet": {"interactions": 40, "unique_authors": 4, "analysis": {"redacted": True}},
        }

    @patch('usage_report.PylonClient')
    def test_full_run(self, mock_client_cls):
        client = make_client(self.indexes, self.identities, self.analysis)
        mock_client_cls.return_value = client
        out = io.StringIO()

        state = run_usage_report(self.config, now=NOW, stream=out)

        self.assertEqual(state.volume, 5000 + 250000)
        self.assertEqual(state.redacted_indexes, ["quiet"])
        self.assertEqual(state.indexes_found, 3)
        self.assertNotIn("gone", state.volume_by_index)
        self.assertEqual(client.for_identity.call_count, 2)

        text = out.getvalue()
        self.assertIn("[Start] Calculating consumption for the billing period beginning on 2026-10-01", text)
        self.assertIn("[Done] Index identification complete.", text)
        self.assertIn("[Working] Executing analysis queries (2 total): 1 2 100%", text)
        self.assertIn("255,000", text)
        self.assertIn("Disclaimer", text)

    @patch('usage_report.PylonClient')
    def test_csv_export(self, mock_client_cls):
        mock_client_cls.return_value = make_client(self.indexes, self.identities, self.analysis)

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, 'usage.csv')
            run_usage_report(self.config, output_csv=path, now=NOW, stream=io.StringIO())
            frame = pd.read_csv(path)

        self.assertEqual(frame["Index ID"].tolist(), ["old", "new"])

    @patch('usage_report.PylonClient')
    def test_failed_analysis_prints_no_report(self, mock_client_cls):
        client = make_client(self.indexes, self.identities, self.analysis)
        client.for_identity.return_value.analyze.side_effect = APIError("Server error: HTTP 500", status_code=500)
        mock_client_cls.return_value = client
        out = io.StringIO()

        with self.assertRaises(AnalysisError):
            run_usage_report(self.config, now=NOW, stream=out)
        self.assertNotIn("Usage Summary:", out.getvalue())


def forward_to(test_client):
    def request(method, url, headers=None, params=None, json=None, timeout=None):
        return test_client.request(method, url, headers=headers, params=params, json=json)
    return request


class TestAgainstMockApi(unittest.TestCase):
    """Runs the report against the FastAPI mock of the PYLON endpoints."""

    def setUp(self):
        self.test_client = TestClient(app)
        self.config = ReporterConfig("acme", "account_key", api_url="http://testserver", page_size=7)

    def test_report_against_mock_api(self):
        now = datetime.now(fixed_offset(-8))
        window = calculate_billing_window(1, now=now)
        qualifying = [Index.model_validate(i) for i in MOCK_INDEXES]
        qualifying = [i for i in qualifying if i.qualifies(window.start_timestamp)]
        needs_analysis = [i for i in qualifying if not i.started_within(window.start_timestamp)]

        with patch('pylon_adapter.requests.request', side_effect=forward_to(self.test_client)):
            state = run_usage_report(self.config, now=now, stream=io.StringIO())

        self.assertEqual(state.indexes_found, len(qualifying))
        self.assertEqual(state.analyze_count, len(needs_analysis))
        self.assertEqual(state.unanalyzed_indexes, [])
        self.assertEqual(state.volume, sum(state.volume_by_index.values()))
        for index_id in state.redacted_indexes:
            self.assertEqual(state.volume_by_index[index_id], 0)


if __name__ == '__main__':
    unittest.main()
