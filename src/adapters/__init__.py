"""Adapters — step handlers that converge the host.

Public re-exports for convenient access.
"""

from src.adapters.base import ApplyContext, StepHandler
from src.adapters.mock import MockHandler
from src.adapters.registry import HandlerRegistry

__all__ = [
    "ApplyContext",
    "HandlerRegistry",
    "MockHandler",
    "StepHandler",
]
