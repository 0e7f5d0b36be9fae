"""Span helper timing the engine's provider calls and session writes."""
from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List


@contextmanager
def span(events: List[Dict[str, Any]], name: str) -> Iterator[None]:
    """Append ``{"span": name, "ms": elapsed}`` to ``events`` when the block exits.

    The engine wraps each ``ResponseProvider.respond`` call as ``provider``
    and each store write as ``persist``; the entry is recorded even when the
    block raises, so failed calls still show their latency.
    """

    start = time.perf_counter()
    try:
        yield
    finally:
        events.append({"span": name, "ms": int((time.perf_counter() - start) * 1000)})


__all__ = ["span"]
