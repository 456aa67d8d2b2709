"""Validation, normalization and aggregation of GitHub Copilot usage metrics."""

__version__ = "0.1.0"
