"""
Emitter: turns rendered definitions into output buffers and writes them.
"""

from __future__ import annotations

from .aggregator import Aggregator, BackendOutput, OutputBuffer
from .atomic_writer import AtomicWriter

__all__ = [
    "Aggregator",
    "AtomicWriter",
    "BackendOutput",
    "OutputBuffer",
]
