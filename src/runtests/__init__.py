"""
runtests - parallel test assembly runner.

This package provides tools to:
- Run a set of test assemblies as external processes with bounded concurrency
- Isolate failures so one crashing assembly never aborts the batch
- Submit the same set to a Helix test farm through a generated job manifest
- Print a sorted summary and save failure logs for inspection
"""

__version__ = "0.1.0"
__author__ = "runtests Team"
