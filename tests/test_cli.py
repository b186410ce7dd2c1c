"""Tests for the task-insights command line."""

import json

import pytest
from click.testing import CliRunner

from task_insights.cli.analytics_commands import analytics_cli, format_table, parse_when

SNAPSHOT = """\
users:
  - {id: 1, name: Ana, role: admin}
  - {id: 2, name: Ben}
  - {id: 3, name: Cy}
teams:
  - {id: 5, name: Core, members: [2]}
projects:
  - {id: 3, name: Site, manager_id: 1, members: [2], team_id: 5}
tasks:
  - {id: 9, project_id: 3, status: completed, estimated_hours: 5,
     due_date: 2024-05-08T17:00:00Z, completed_at: 2024-05-07T10:00:00Z,
     created_at: 2024-05-01T09:00:00Z, assignees: [2]}
  - {id: 10, project_id: 3, status: pending, priority: urgent, estimated_hours: 4,
     due_date: 2024-05-10T17:00:00Z, created_at: 2024-05-07T09:00:00Z,
     assignees: [2], depends_on: [11]}
  - {id: 11, project_id: 3, status: in_progress, estimated_hours: 6,
     due_date: 2024-05-09T17:00:00Z, created_at: 2024-05-02T09:00:00Z}
"""

WEEK = ["--start", "2024-05-06", "--end", "2024-05-12"]


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def base_args(tmp_path):
    snapshot = tmp_path / "snapshot.yaml"
    snapshot.write_text(SNAPSHOT)
    config = tmp_path / "config.yaml"
    config.write_text(f"data_dir: {tmp_path / 'data'}\n")
    return ["--config", str(config), "--snapshot", str(snapshot)]


class TestScoreCommand:
    """Test suite for the score command"""

    def test_json_output(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["score", "--project", "3", *WEEK, "-f", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert 0 <= data["score"] <= 100
        assert data["metrics"]["completionRate"] == 33
        assert data["metrics"]["urgentRate"] == 100

    def test_plain_output(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["score", *WEEK, "-f", "plain"])
        assert result.exit_code == 0, result.output
        assert "completionRate" in result.output
        assert "score" in result.output

    def test_text_output(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["score", "--team", "5", "--period", "last_week"])
        assert result.exit_code == 0, result.output
        assert "Score:" in result.output

    def test_track_records_trend(self, runner, base_args):
        args = base_args + ["score", "--project", "3", *WEEK, "-f", "json", "--track"]
        first = json.loads(runner.invoke(analytics_cli, args).output)
        second = json.loads(runner.invoke(analytics_cli, args).output)

        assert first["trend"]["previous"] is None
        assert second["trend"]["previous"] == first["score"]
        assert second["trend"]["direction"] == "neutral"

    def test_conflicting_scopes(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["score", "--project", "3", "--user", "2"])
        assert result.exit_code == 2

    def test_start_without_end(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["score", "--start", "2024-05-06"])
        assert result.exit_code == 2


class TestReportCommand:
    """Test suite for the report command"""

    def test_json_report(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["report", "--project", "3", *WEEK, "-f", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["periodA"]["start"] == "2024-05-06T00:00:00+00:00"
        assert data["periodB"]["start"] == "2024-04-29T00:00:00+00:00"
        assert data["summary"]["velocity"]["value"] == 5
        assert data["causes"][0]["name"] == "Urgent Task Load"

    def test_text_report(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["report", *WEEK])
        assert result.exit_code == 0, result.output
        assert "Forecast" in result.output

    def test_member_can_see_project(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["--as-user", "2", "report", "--project", "3", *WEEK])
        assert result.exit_code == 0, result.output

    def test_forbidden(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["--as-user", "3", "report", *WEEK])
        assert result.exit_code == 1
        assert "Forbidden" in result.output

    def test_not_found(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["report", "--project", "42", *WEEK])
        assert result.exit_code == 1
        assert "Project not found" in result.output

    def test_missing_snapshot(self, runner, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text(f"data_dir: {tmp_path}\n")

        no_snapshot = runner.invoke(analytics_cli, ["--config", str(config), "report"])
        assert no_snapshot.exit_code == 2

        unreadable = runner.invoke(analytics_cli, ["--config", str(config), "--snapshot",
                                                   str(tmp_path / "gone.yaml"), "report"])
        assert unreadable.exit_code == 1
        assert "Cannot read snapshot" in unreadable.output


class TestOtherCommands:

    def test_forecast(self, runner, base_args):
        result = runner.invoke(analytics_cli, base_args + ["forecast", "10", "404", "-f", "json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["404"] is None
        assert data["10"]["explanation"].startswith("Dependent on incomplete tasks")

    def test_trend(self, runner, base_args):
        args = base_args + ["trend", "project", "velocity", "--entity-id", "3"]
        first = runner.invoke(analytics_cli, args + ["70"])
        second = runner.invoke(analytics_cli, args + ["75"])

        assert "first observation" in first.output
        assert "70.0 -> 75.0" in second.output
        assert "7%" in second.output

    def test_init_config(self, runner, base_args, tmp_path):
        target = tmp_path / "written.yaml"
        result = runner.invoke(analytics_cli, base_args + ["init-config", "--path", str(target)])

        assert result.exit_code == 0, result.output
        assert target.exists()
        assert "data_dir" in target.read_text()


class TestHelpers:

    def test_parse_when(self):
        assert parse_when("2024-05-06").isoformat() == "2024-05-06T00:00:00+00:00"
        assert parse_when("tomorrow").tzinfo is not None

    def test_format_table(self):
        assert format_table([]) == "No data available"
        assert "metric" in format_table([{"metric": "velocity", "value": 4}])
