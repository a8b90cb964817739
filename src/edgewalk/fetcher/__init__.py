"""Fetcher capability and the storage backends that implement it.

Public API:
    Fetcher: Protocol all backends implement.
    InMemoryFetcher: Dict-based backend for tests and embedded use.
    KuzuFetcher: Embedded Kuzu graph database backend.
    FetcherRegistry: Per-label fetcher selection and lifecycle.
    create_fetcher: Factory for creating fetchers by backend name.
"""

from __future__ import annotations

from .kuzu_fetcher import KuzuFetcher
from .memory_fetcher import InMemoryFetcher
from .protocol import Fetcher
from .registry import FetcherRegistry, create_fetcher

__all__ = [
    "Fetcher",
    "InMemoryFetcher",
    "KuzuFetcher",
    "FetcherRegistry",
    "create_fetcher",
]
