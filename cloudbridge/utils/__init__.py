"""Utility modules for CloudBridge."""

from .export import export_data, export_to_csv, export_to_json, flatten_dict
from .logging import setup_logging

__all__ = [
    "export_data",
    "export_to_csv",
    "export_to_json",
    "flatten_dict",
    "setup_logging",
]
