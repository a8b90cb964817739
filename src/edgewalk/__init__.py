"""edgewalk: query-execution core for multi-step graph traversals."""

__version__ = "0.1.0"

from .config import TraversalConfig
from .exceptions import (
    BackendUnavailableError,
    FetcherClosedError,
    FetcherConfigurationError,
    FetcherStateError,
    InvalidDirectionError,
    InvalidQueryError,
    TraversalError,
    TraversalTimeoutError,
    UnknownColumnError,
    UnknownLabelError,
)
from .fetcher import Fetcher, FetcherRegistry, InMemoryFetcher, KuzuFetcher, create_fetcher
from .metadata import Label, LabelDirectory, ServiceColumn
from .orchestrator import TraversalOrchestrator
from .query import (
    DuplicatePolicy,
    Query,
    QueryParam,
    QueryRequest,
    Step,
    StepResult,
    TraversalResult,
)
from .types import Direction, Edge, EdgeWithScore, LabelWithDirection, VertexId

__all__ = [
    # Identifiers and edges
    "Direction",
    "VertexId",
    "LabelWithDirection",
    "Edge",
    "EdgeWithScore",
    # Traversal plan and results
    "DuplicatePolicy",
    "QueryParam",
    "Step",
    "Query",
    "QueryRequest",
    "StepResult",
    "TraversalResult",
    # Fetchers
    "Fetcher",
    "InMemoryFetcher",
    "KuzuFetcher",
    "FetcherRegistry",
    "create_fetcher",
    # Metadata
    "Label",
    "LabelDirectory",
    "ServiceColumn",
    # Orchestration and config
    "TraversalOrchestrator",
    "TraversalConfig",
    # Exceptions
    "TraversalError",
    "InvalidQueryError",
    "InvalidDirectionError",
    "FetcherConfigurationError",
    "BackendUnavailableError",
    "TraversalTimeoutError",
    "FetcherStateError",
    "FetcherClosedError",
    "UnknownLabelError",
    "UnknownColumnError",
]
