"""Pytest configuration and fixtures for edgewalk tests."""

from __future__ import annotations

import pytest
import pytest_asyncio

from edgewalk import FetcherRegistry, InMemoryFetcher, TraversalOrchestrator, VertexId


def v(name: str) -> VertexId:
    """Vertex in the ``social:user`` column used throughout the tests."""
    return VertexId("social", "user", name)


@pytest_asyncio.fixture
async def memory_fetcher():
    """Initialized InMemoryFetcher with a small social graph.

    Graph structure (knows, score in parentheses):
        alice -> bob (0.9), alice -> carol (0.5), alice -> dave (0.2)
        bob -> erin (0.8), bob -> frank (0.4)
        carol -> erin (0.6), carol -> alice (0.7)
        dave -> frank (1.0)
    Plus: alice -works_with-> carol (1.0)
    """
    fetcher = InMemoryFetcher(fetcher_id="memory-test")
    await fetcher.init()
    for src, tgt, score in [
        ("alice", "bob", 0.9),
        ("alice", "carol", 0.5),
        ("alice", "dave", 0.2),
        ("bob", "erin", 0.8),
        ("bob", "frank", 0.4),
        ("carol", "erin", 0.6),
        ("carol", "alice", 0.7),
        ("dave", "frank", 1.0),
    ]:
        fetcher.add_edge(v(src), v(tgt), "knows", {"score": score})
    fetcher.add_edge(v("alice"), v("carol"), "works_with", {"score": 1.0})
    yield fetcher
    fetcher.close()


@pytest.fixture
def orchestrator(memory_fetcher):
    """Orchestrator whose registry routes every label to memory_fetcher."""
    return TraversalOrchestrator(FetcherRegistry(default=memory_fetcher))
