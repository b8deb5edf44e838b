"""Command-line and HTTP client for a Tencent Cloud COS bucket."""

__version__ = "0.1.0"
