"""
Load-testing harness for the runner service.

This package fans out job submissions against the runner API, polls every
accepted job until it reaches a terminal status, and aggregates the observed
latencies into a JSON report and an optional chart.
"""

from .runner import LoadRun, LoadTestRunner

__all__ = ["LoadRun", "LoadTestRunner"]
