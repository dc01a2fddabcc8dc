"""
System Resource Helpers for PDF Studio.

Sizes the in-process ONNX Runtime thread pool so CPU inference does not
starve the UI thread on small laptops.

Usage:
    from pdfstudio.system_resources import get_inference_threads

    threads = get_inference_threads(max_threads=4)
"""

import os
from typing import NamedTuple

import psutil

from pdfstudio.logging_config import debug_log


class ResourceInfo(NamedTuple):
    """System resource information."""
    physical_cores: int
    logical_cores: int
    available_ram_gb: float


def get_system_resources() -> ResourceInfo:
    """
    Get current system resource information.

    Returns:
        ResourceInfo with physical/logical core counts and available RAM.
    """
    logical = os.cpu_count() or 1
    physical = psutil.cpu_count(logical=False) or logical
    mem = psutil.virtual_memory()
    return ResourceInfo(
        physical_cores=physical,
        logical_cores=logical,
        available_ram_gb=mem.available / (1024 ** 3),
    )


def get_inference_threads(max_threads: int = 4, min_threads: int = 1) -> int:
    """
    Intra-op thread count for a CPU inference session.

    Uses physical cores (hyperthreads do not help matrix multiplies), leaves
    one core for the UI when there is more than one, and caps at max_threads.

    Args:
        max_threads: Hard upper limit
        min_threads: Lower bound regardless of hardware

    Returns:
        Thread count to configure on the session
    """
    resources = get_system_resources()
    spare = resources.physical_cores - 1 if resources.physical_cores > 1 else 1
    threads = max(min_threads, min(spare, max_threads))

    debug_log(
        f"[Resources] Inference threads: {threads} "
        f"(physical cores: {resources.physical_cores}, logical: {resources.logical_cores}, "
        f"RAM available: {resources.available_ram_gb:.1f}GB, cap: {max_threads})"
    )
    return threads
