"""Runtime module for native tool execution.

This module provides process execution with live output relay and reliable
termination for the launcher entry points.
"""

from __future__ import annotations

from .process_runner import InvocationResult, ProcessRunner, ProcessSpec, run_process

__all__ = [
    "InvocationResult",
    "ProcessRunner",
    "ProcessSpec",
    "run_process",
]
