"""Tests for the command-line interface."""

from __future__ import annotations

import json

import polars as pl
import pytest
from typer.testing import CliRunner

from streamingml.cli import app
from streamingml.report import ReplayReport


runner = CliRunner()


# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def events_csv(tmp_path):
    """CSV of 60 training events with two features and a target."""
    path = tmp_path / "events.csv"
    pl.DataFrame(
        {
            "x0": [float(i) for i in range(60)],
            "x1": [float((i * 7) % 11) for i in range(60)],
            "y": [0.0 if i < 30 else 10.0 for i in range(60)],
        }
    ).write_csv(path)
    return path


# =============================================================================
# Replay
# =============================================================================


class TestReplayCommand:
    """Tests for the replay command."""

    def test_json_report(self, events_csv):
        """Test replaying a file with JSON output."""
        result = runner.invoke(
            app,
            [
                "replay",
                str(events_csv),
                "--format",
                "json",
                "--grace-period",
                "20",
                "--change-detector",
                "0",
                "--anomaly-detector",
                "0",
            ],
        )

        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["rows"] == 60
        assert report["features"] == ["x0", "x1"]
        assert report["target"] == "y"
        assert report["rules"][-1]["conditions"] == "default"
        assert report["n_rules"] == len(report["rules"]) - 1
        assert report["peak_mean_squared_error"] >= report["mean_squared_error"]
        assert 1 <= report["peak_row"] <= 60

    def test_console_report(self, events_csv):
        """Test the rich console output."""
        result = runner.invoke(app, ["replay", str(events_csv)])

        assert result.exit_code == 0
        assert "Replay Report" in result.stdout
        assert "Peak MSE" in result.stdout

    def test_explicit_target(self, events_csv):
        """Test choosing the target column."""
        result = runner.invoke(
            app, ["replay", str(events_csv), "--target", "x0", "--format", "json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["features"] == ["x1", "y"]

    def test_missing_file(self, tmp_path):
        """Test that a missing file exits with an error."""
        result = runner.invoke(app, ["replay", str(tmp_path / "absent.csv")])

        assert result.exit_code == 1

    def test_unknown_target(self, events_csv):
        """Test that an unknown target column exits with an error."""
        result = runner.invoke(app, ["replay", str(events_csv), "--target", "z"])

        assert result.exit_code == 1

    def test_invalid_selector(self, events_csv):
        """Test that an invalid detector selector exits with an error."""
        result = runner.invoke(
            app, ["replay", str(events_csv), "--change-detector", "5"]
        )

        assert result.exit_code == 1
        assert "0,1,2" in result.output


# =============================================================================
# Config
# =============================================================================


class TestConfigCommand:
    """Tests for the config command."""

    def test_prints_config_file(self, tmp_path):
        """Test printing the hyperparameters of a file."""
        path = tmp_path / "config.toml"
        path.write_text("[amrules]\ngrace_period = 42\n")

        result = runner.invoke(app, ["config", "--config", str(path)])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["grace_period"] == 42


# =============================================================================
# Report
# =============================================================================


def _report(history: list[float]) -> ReplayReport:
    return ReplayReport(
        source="events.csv",
        model_name="replay",
        features=["x0"],
        target="y",
        rows=len(history),
        mean_squared_error=history[-1] if history else 0.0,
        rules=pl.DataFrame(
            {
                "rule_id": [0],
                "conditions": ["default"],
                "instances_seen": [len(history)],
                "target_mean": [0.0],
                "n_drifts": [0],
                "n_anomalies": [0],
            }
        ),
        mse_history=history,
    )


class TestReplayReport:
    """Tests for the replay report."""

    def test_peak_error(self):
        """Test that the peak of the running MSE is reported with its row."""
        report = _report([1.0, 4.0, float("nan"), 4.0, 2.5])

        assert report.peak_mean_squared_error == 4.0
        assert report.peak_row == 2
        assert report.to_dict()["peak_mean_squared_error"] == 4.0
        assert report.to_dict()["peak_row"] == 2
        assert "Peak MSE" in str(report)

    def test_empty_history(self):
        """Test a report without per-row errors."""
        report = _report([])

        assert report.peak_mean_squared_error == 0.0
        assert report.peak_row is None
        assert "Peak MSE" not in str(report)
