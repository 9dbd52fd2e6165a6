"""Unit tests for export functionality."""

import csv
import json
from datetime import date
from decimal import Decimal

import pytest

from cloudbridge.models.cost import CostSummary, CostTrend, DailyCost, ServiceCost
from cloudbridge.utils.export import (
    export_data,
    export_to_csv,
    export_to_json,
    flatten_dict,
    summary_rows,
    trend_rows,
)


@pytest.fixture
def summary():
    return CostSummary(
        account_id="acct-1",
        account_name="Prod",
        provider="aws",
        current_month_cost=Decimal("12.50"),
        last_month_cost=Decimal("10"),
        currency="USD",
        month_over_month_change_pct=25.0,
        current_month_details=[ServiceCost("EC2", Decimal("10"), "USD"), ServiceCost("S3", Decimal("2.50"), "USD")],
    )


class TestBasicExport:
    """Tests for the generic JSON/CSV writers."""

    def test_export_to_json(self, tmp_path):
        path = export_to_json({"amount": Decimal("1.5"), "day": date(2024, 3, 1)}, str(tmp_path / "out.json"))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"amount": "1.5", "day": "2024-03-01"}

    def test_export_to_csv(self, tmp_path):
        path = export_to_csv([{"a": 1, "b": 2}, {"a": 3, "b": 4}], str(tmp_path / "out.csv"))

        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert rows == [{"a": "1", "b": "2"}, {"a": "3", "b": "4"}]

    def test_export_empty_csv_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="empty"):
            export_to_csv([], str(tmp_path / "out.csv"))

    def test_flatten_dict(self):
        flat = flatten_dict({"a": {"b": 1, "c": {"d": 2}}, "e": [1, 2]})
        assert flat == {"a_b": 1, "a_c_d": 2, "e": "1, 2"}


class TestCostExport:
    """Tests for summary and trend rows."""

    def test_summary_rows(self, summary):
        rows = summary_rows([summary])

        assert rows[0]["account_id"] == "acct-1"
        assert rows[0]["current_month_cost"] == "12.50"
        assert rows[0]["current_month_details"] == "EC2=10, S3=2.50"

    def test_trend_rows(self):
        trend = CostTrend("acct-1", "CNY", [DailyCost(date(2024, 3, 1), Decimal("4.5"))])
        assert trend_rows(trend) == [{"account_id": "acct-1", "date": "2024-03-01", "amount": "4.5", "currency": "CNY"}]

    def test_export_data_by_extension(self, tmp_path, summary):
        json_path = export_data([summary.to_dict()], summary_rows([summary]), str(tmp_path / "s.json"))
        csv_path = export_data([summary.to_dict()], summary_rows([summary]), str(tmp_path / "s.CSV"))

        assert json.loads(json_path.read_text(encoding="utf-8"))[0]["account_name"] == "Prod"
        assert csv_path.read_text(encoding="utf-8").startswith("account_id,")

    def test_export_data_unknown_extension(self, tmp_path, summary):
        with pytest.raises(ValueError, match="Unsupported export format"):
            export_data([], [], str(tmp_path / "s.xlsx"))
