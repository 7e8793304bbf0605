"""Taskflow Engine: executes task graphs in dependency order."""

__version__ = "1.0.0"
