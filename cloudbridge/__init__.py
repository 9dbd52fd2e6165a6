"""CloudBridge - multi-cloud cost reporting client."""

__version__ = "0.3.0"
