"""Modular Monitor — autofix coordination for host health checks."""

__version__ = "0.1.0"
