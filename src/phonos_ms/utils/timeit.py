"""
Timing Utilities.

Measures wall-clock time of code blocks with ``time.perf_counter()``.
Used for backend call latency (logged and exported as
``phonos_backend_seconds``) and storage write timings.

Example Usage:
    with timeit("synthesis") as t:
        audio = backend.synthesize(req)
    print(f"Took {t.timing.seconds:.3f}s")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: Identifier for what was timed (e.g., "synthesis").
        seconds: Duration in seconds.
        meta: Optional metadata dictionary for additional context.
    """
    name: str
    seconds: float
    meta: Optional[Dict[str, Any]] = None


class timeit:
    """
    Context manager for timing code blocks.

    The result is available as ``.timing`` once the block exits, also
    when the block raised.

    Example:
        with timeit("synthesis", meta={"backend": "google"}) as t:
            audio = synthesize(req)
        # t.timing.meta == {"backend": "google"}
    """

    def __init__(self, name: str, meta: Optional[Dict[str, Any]] = None):
        self.name = name
        self.meta = meta
        self._t0: float | None = None
        self.timing: Timing | None = None

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        t1 = perf_counter()
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=(t1 - self._t0), meta=self.meta)
