"""Observability utilities for the practice conversation stack."""
from .logger import log_event
from .tracing import span

__all__ = ["log_event", "span"]
