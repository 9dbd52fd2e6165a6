"""Command-line interface for CloudBridge."""
