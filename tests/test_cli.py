"""
Tests for the command-line interface over JSON snapshot files.
"""

import csv
import io
import json
import logging

import pytest

from principal_activity.cli import main
from principal_activity.export import FilterState, export_filter_state
from principal_activity.query import TimelineFilter
from tests.fixtures import NOW


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def snapshot(tmp_path, mixed_records, summaries):
    path = tmp_path / "snapshot.json"
    path.write_text(
        json.dumps(
            {
                "timeline": [r.to_dict() for r in mixed_records],
                "summaries": [s.to_dict() for s in summaries],
            }
        )
    )
    return str(path)


def run(*argv) -> int:
    return main(["--log-level", "WARNING", *argv, "--now", NOW.isoformat()])


class TestTimelineCommand:
    def test_table(self, snapshot, capsys):
        assert run("timeline", snapshot) == 0
        out = capsys.readouterr().out
        assert "TIMELINE  page 1/1  (10 matching)" in out
        assert "Subject 1" in out

    def test_json_with_type_filter(self, snapshot, capsys):
        assert run("timeline", snapshot, "--type", "INTERACTION", "--format", "json") == 0
        data = json.loads(capsys.readouterr().out)
        assert len(data["timeline_entries"]) == 6
        assert data["applied_filters"]["activity_types"] == ["INTERACTION"]

    def test_csv_page(self, snapshot, capsys):
        assert run("timeline", snapshot, "--limit", "3", "--page", "2", "--format", "csv") == 0
        rows = list(csv.DictReader(io.StringIO(capsys.readouterr().out)))
        assert [r["timeline_rank"] for r in rows] == ["4", "5", "6"]

    def test_sort_order(self, snapshot, capsys):
        assert run(
            "timeline", snapshot, "--sort", "timeline_rank", "--order", "asc", "--format", "json"
        ) == 0
        entries = json.loads(capsys.readouterr().out)["timeline_entries"]
        assert [e["timeline_rank"] for e in entries] == list(range(1, 11))

    def test_share_url(self, snapshot, capsys):
        assert run("timeline", snapshot, "--search", "Subject 1", "--url", "https://x.test/t") == 0
        out = capsys.readouterr().out
        assert "Share: https://x.test/t?search=Subject+1" in out

    def test_state_file(self, snapshot, tmp_path, capsys):
        state_path = tmp_path / "state.json"
        state = FilterState(filters=TimelineFilter(search="Subject 1"))
        state_path.write_text(export_filter_state(state))
        assert run("timeline", snapshot, "--state", str(state_path), "--format", "json") == 0
        assert len(json.loads(capsys.readouterr().out)["timeline_entries"]) == 2

    def test_unreadable_state_file(self, snapshot, tmp_path, capsys):
        state_path = tmp_path / "state.json"
        state_path.write_text("not json")
        assert run("timeline", snapshot, "--state", str(state_path)) == 2
        assert "state" in capsys.readouterr().err


class TestValidationErrors:
    def test_unknown_type(self, snapshot, capsys):
        assert run("timeline", snapshot, "--type", "MEETING") == 2
        assert "activity_types" in capsys.readouterr().err

    def test_inverted_dates(self, snapshot, capsys):
        assert run("timeline", snapshot, "--start", "2024-03-10", "--end", "2024-03-01") == 2
        assert "date_range" in capsys.readouterr().err

    def test_missing_snapshot(self, tmp_path, capsys):
        assert run("timeline", str(tmp_path / "missing.json")) == 1
        assert "Cannot read snapshot" in capsys.readouterr().err

    def test_corrupt_snapshot(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text("{")
        assert run("analytics", str(path)) == 1


class TestAnalyticsCommand:
    def test_json(self, snapshot, capsys):
        assert run("analytics", snapshot, "--format", "json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["analytics"]["total_principals"] == 3
        assert data["benchmark"]["opportunity_benchmark"] == "above"

    def test_csv(self, snapshot, capsys):
        assert run("analytics", snapshot, "--format", "csv") == 0
        assert capsys.readouterr().out.startswith("Metric,Value\n")

    def test_table_with_executive_summary(self, snapshot, capsys):
        assert run("analytics", snapshot, "--top", "2", "--executive") == 0
        out = capsys.readouterr().out
        assert "TOP PERFORMERS" in out
        assert "Cobalt Produce" not in out.split("TOP PERFORMERS")[1].split("BENCHMARK")[0]
        assert "EXECUTIVE SUMMARY" in out

    def test_custom_benchmarks(self, snapshot, tmp_path, capsys):
        path = tmp_path / "bench.yaml"
        path.write_text("opportunity_rate:\n  low: 0.8\n  high: 0.9\n")
        assert run("analytics", snapshot, "--benchmarks", str(path), "--format", "json") == 0
        assert json.loads(capsys.readouterr().out)["benchmark"]["opportunity_benchmark"] == "below"


class TestReportCommand:
    def test_summary(self, snapshot, capsys):
        assert run("report", snapshot) == 0
        out = capsys.readouterr().out
        assert "PRINCIPAL TIMELINE SUMMARY REPORT" in out
        assert "Total Entries: 10" in out

    def test_detailed_json(self, snapshot, capsys):
        assert run("report", snapshot, "--format", "detailed", "--type", "OPPORTUNITY_CREATED",
                   "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["metadata"]["entry_count"] == 4
        assert data["metadata"]["filters_applied"]["activity_types"] == ["OPPORTUNITY_CREATED"]
