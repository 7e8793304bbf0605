"""HTTP API for the task workflow engine."""
