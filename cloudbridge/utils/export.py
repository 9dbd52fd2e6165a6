"""Export utilities for JSON and CSV formats."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

from ..models.cost import CostSummary, CostTrend

logger = logging.getLogger(__name__)


def export_to_json(data: Any, filepath: str) -> Path:
    """Export data to JSON file.

    Args:
        data: Data to export (must be JSON-serializable)
        filepath: Destination file path

    Returns:
        Path to exported file
    """
    path = Path(filepath)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)

    logger.info(f"Exported data to JSON: {path}")
    return path


def export_to_csv(data: List[Dict[str, Any]], filepath: str) -> Path:
    """Export list of dictionaries to CSV file.

    Args:
        data: List of dictionaries to export
        filepath: Destination file path

    Returns:
        Path to exported file

    Raises:
        ValueError: If data is empty or not a list of dicts
    """
    if not data:
        raise ValueError("Cannot export empty data to CSV")

    if not isinstance(data, list) or not isinstance(data[0], dict):
        raise ValueError("Data must be a list of dictionaries for CSV export")

    path = Path(filepath)
    fieldnames = list(data[0].keys())

    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(data)

    logger.info(f"Exported {len(data)} rows to CSV: {path}")
    return path


def flatten_dict(d: Dict[str, Any], parent_key: str = "", sep: str = "_") -> Dict[str, Any]:
    """Flatten a nested dictionary for CSV export.

    Args:
        d: Dictionary to flatten
        parent_key: Parent key for nested items
        sep: Separator for concatenating keys

    Returns:
        Flattened dictionary
    """
    items: List[Tuple[str, Any]] = []
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k
        if isinstance(v, dict):
            items.extend(flatten_dict(v, new_key, sep=sep).items())
        elif isinstance(v, list):
            items.append((new_key, ", ".join(_describe(x) for x in v)))
        else:
            items.append((new_key, v))
    return dict(items)


def _describe(value: Any) -> str:
    # Service breakdowns read better as "EC2=12.50" than as a dict repr
    if isinstance(value, dict) and "service" in value and "amount" in value:
        return f"{value['service']}={value['amount']}"
    return str(value)


def summary_rows(summaries: List[CostSummary]) -> List[Dict[str, Any]]:
    """One flat row per summary, for CSV export."""
    return [flatten_dict(s.to_dict()) for s in summaries]


def trend_rows(trend: CostTrend) -> List[Dict[str, Any]]:
    """One row per day of a trend, for CSV export."""
    return [
        {'account_id': trend.account_id, 'date': d.date.isoformat(), 'amount': str(d.amount), 'currency': trend.currency}
        for d in trend.daily_costs
    ]


def export_data(data: Any, rows: List[Dict[str, Any]], filepath: str) -> Path:
    """Export by file extension: ``.json`` writes data, ``.csv`` writes rows.

    Raises:
        ValueError: For any other extension, or empty rows for CSV
    """
    suffix = Path(filepath).suffix.lower()
    if suffix == ".json":
        return export_to_json(data, filepath)
    if suffix == ".csv":
        return export_to_csv(rows, filepath)
    raise ValueError(f"Unsupported export format '{suffix}'. Use .json or .csv")
