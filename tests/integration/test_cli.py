"""
Integration tests for the cloudbridge CLI.

Commands run through Typer's CliRunner against a temporary config file;
the orchestrator is replaced where a command would reach the network.
"""

import json
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import yaml
from typer.testing import CliRunner

from cloudbridge.cache import CostCache, FileBackend
from cloudbridge.cli.main import app
from cloudbridge.cost.orchestrator import AccountFailure, BatchResult
from cloudbridge.errors import AuthError, TransportError
from cloudbridge.models.cost import CostSummary, CostTrend, DailyCost, ServiceCost


@pytest.fixture
def cli_runner():
    """Create a Typer CLI runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({
        "cache_dir": str(tmp_path / "cache"),
        "accounts": [
            {"id": "prod", "name": "Prod", "provider": "aws", "access_key_id": "AKIAEXAMPLE1234", "secret": "s"},
            {"id": "cn", "name": "China", "provider": "aliyun", "access_key_id": "LTAIEXAMPLE", "secret": "s", "enabled": False},
        ],
    }), encoding="utf-8")
    return path


@pytest.fixture
def orchestrator():
    """Stand-in orchestrator usable as a context manager."""
    mock = MagicMock()
    mock.__enter__.return_value = mock
    with patch("cloudbridge.cli.main.build_orchestrator", return_value=mock):
        yield mock


def run(cli_runner, config_file, *args):
    return cli_runner.invoke(app, ["--config", str(config_file), *args])


def sample_summary():
    return CostSummary(
        account_id="prod",
        account_name="Prod",
        provider="aws",
        current_month_cost=Decimal("150"),
        last_month_cost=Decimal("100"),
        currency="USD",
        month_over_month_change_pct=50.0,
        current_month_details=[ServiceCost("EC2", Decimal("150"), "USD")],
    )


def test_version(cli_runner, config_file):
    result = run(cli_runner, config_file, "version")

    assert result.exit_code == 0
    assert "cloudbridge version 0.3.0" in result.stdout


def test_accounts_lists_masked_keys(cli_runner, config_file):
    result = run(cli_runner, config_file, "accounts")

    assert result.exit_code == 0
    assert "prod" in result.stdout
    assert "1234" in result.stdout
    assert "AKIAEXAMPLE1234" not in result.stdout


def test_accounts_empty(cli_runner, tmp_path):
    result = run(cli_runner, tmp_path / "missing.yaml", "accounts")

    assert result.exit_code == 0
    assert "No accounts configured" in result.stdout


def test_bad_config_exits_with_config_code(cli_runner, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml.safe_dump({"accounts": [{"id": "x", "provider": "oracle"}]}), encoding="utf-8")

    result = run(cli_runner, path, "accounts")

    assert result.exit_code == 1
    assert "Unknown provider" in result.stdout


def test_invalid_yaml_exits_with_config_code(cli_runner, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("accounts: [", encoding="utf-8")

    assert run(cli_runner, path, "accounts").exit_code == 1


class TestSummaryCommand:
    """Tests for `cloudbridge summary`."""

    def test_table_and_failures(self, cli_runner, config_file, orchestrator):
        orchestrator.refresh_batch.return_value = BatchResult(
            [sample_summary()], [AccountFailure("cn", "auth", "Credentials rejected: HTTP 403")]
        )

        result = run(cli_runner, config_file, "summary", "--force")

        assert result.exit_code == 0
        orchestrator.refresh_batch.assert_called_once_with(force=True)
        assert "Prod" in result.stdout
        assert "+50.0%" in result.stdout
        assert "credentials rejected" in result.stdout

    def test_details(self, cli_runner, config_file, orchestrator):
        orchestrator.refresh_batch.return_value = BatchResult([sample_summary()])

        result = run(cli_runner, config_file, "summary", "--details")

        assert "EC2: 150.00 USD" in result.stdout

    def test_export_json(self, cli_runner, config_file, orchestrator, tmp_path):
        orchestrator.refresh_batch.return_value = BatchResult([sample_summary()])
        out = tmp_path / "summary.json"

        result = run(cli_runner, config_file, "summary", "--export", str(out))

        assert result.exit_code == 0
        assert json.loads(out.read_text(encoding="utf-8"))[0]["current_month_cost"] == "150"

    def test_export_unsupported_format(self, cli_runner, config_file, orchestrator, tmp_path):
        orchestrator.refresh_batch.return_value = BatchResult([sample_summary()])

        result = run(cli_runner, config_file, "summary", "--export", str(tmp_path / "summary.xlsx"))

        assert result.exit_code == 1

    def test_no_data(self, cli_runner, config_file, orchestrator):
        orchestrator.refresh_batch.return_value = BatchResult()

        result = run(cli_runner, config_file, "summary")

        assert result.exit_code == 0
        assert "No cost data available" in result.stdout


class TestTrendCommand:
    """Tests for `cloudbridge trend`."""

    def test_trend_table(self, cli_runner, config_file, orchestrator):
        orchestrator.refresh_trend.return_value = CostTrend("prod", "USD", [
            DailyCost(date(2024, 3, 1), Decimal("1")),
            DailyCost(date(2024, 3, 2), Decimal("3")),
        ])

        result = run(cli_runner, config_file, "trend", "prod", "--start", "2024-03-01", "--end", "2024-03-02")

        assert result.exit_code == 0
        orchestrator.refresh_trend.assert_called_once_with(
            "prod", start=date(2024, 3, 1), end=date(2024, 3, 2), force=False
        )
        assert "2024-03-02" in result.stdout
        assert "Total: 4.00 USD" in result.stdout
        assert "Max: 3.00 USD" in result.stdout

    def test_export_csv(self, cli_runner, config_file, orchestrator, tmp_path):
        orchestrator.refresh_trend.return_value = CostTrend("prod", "USD", [DailyCost(date(2024, 3, 1), Decimal("1"))])
        out = tmp_path / "trend.csv"

        result = run(cli_runner, config_file, "trend", "prod", "--export", str(out))

        assert result.exit_code == 0
        assert out.read_text(encoding="utf-8").splitlines()[1] == "prod,2024-03-01,1,USD"

    def test_invalid_date(self, cli_runner, config_file, orchestrator):
        result = run(cli_runner, config_file, "trend", "prod", "--start", "March 1")

        assert result.exit_code == 1
        orchestrator.refresh_trend.assert_not_called()

    def test_auth_error_exit_code(self, cli_runner, config_file, orchestrator):
        orchestrator.refresh_trend.side_effect = AuthError("HTTP 403 - denied")

        result = run(cli_runner, config_file, "trend", "prod")

        assert result.exit_code == 3
        assert "Credentials rejected" in result.stdout

    def test_transport_error_exit_code(self, cli_runner, config_file, orchestrator):
        orchestrator.refresh_trend.side_effect = TransportError("timed out")

        assert run(cli_runner, config_file, "trend", "prod").exit_code == 2


class TestValidateCommand:
    """Tests for `cloudbridge validate`."""

    def test_valid(self, cli_runner, config_file, orchestrator):
        orchestrator.validate_account.return_value = True

        result = run(cli_runner, config_file, "validate", "prod")

        assert result.exit_code == 0
        assert "Credentials valid" in result.stdout

    def test_invalid(self, cli_runner, config_file, orchestrator):
        orchestrator.validate_account.return_value = False

        assert run(cli_runner, config_file, "validate", "prod").exit_code == 3


def test_cache_clear(cli_runner, config_file, tmp_path):
    cache = CostCache(FileBackend(tmp_path / "cache"))
    cache.put_summary(sample_summary())
    cache.put("summary:other", {})

    result = run(cli_runner, config_file, "cache", "clear", "prod")
    assert result.exit_code == 0
    assert "Removed 1 cache entry" in result.stdout

    result = run(cli_runner, config_file, "cache", "clear")
    assert "Removed 1 cache entry" in result.stdout
    assert cache.backend.keys() == []
