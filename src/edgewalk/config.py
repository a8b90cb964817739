"""Configuration for wiring fetchers, metadata and the orchestrator together.

Public API:
    TraversalConfig: Typed view of a traversal service's configuration.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .exceptions import FetcherConfigurationError
from .fetcher.registry import FetcherRegistry
from .metadata import LabelDirectory
from .orchestrator import TraversalOrchestrator


@dataclass
class TraversalConfig:
    """Configuration of one traversal service.

    Attributes:
        default_timeout: Seconds a query may take when it sets no timeout.
        fetchers: Registry config, in the ``FetcherRegistry.from_config`` shape.
        labels: Metadata directory data, in the ``LabelDirectory.from_dict`` shape.
    """

    default_timeout: float | None = None
    fetchers: dict[str, Any] = field(default_factory=lambda: {"default": {"backend": "memory"}})
    labels: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default_timeout is not None and self.default_timeout <= 0:
            raise FetcherConfigurationError("default_timeout must be positive")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TraversalConfig:
        """Build a config from plain data; unknown keys are rejected."""
        known = {"default_timeout", "fetchers", "labels"}
        unknown = set(data) - known
        if unknown:
            raise FetcherConfigurationError(
                f"Unknown config keys: {', '.join(sorted(unknown))}"
            )
        return cls(**dict(data))

    @classmethod
    def from_json_file(cls, path: Path | str) -> TraversalConfig:
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise FetcherConfigurationError(f"Cannot read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise FetcherConfigurationError(f"Config {path} must hold a JSON object")
        return cls.from_dict(data)

    def build_directory(self) -> LabelDirectory | None:
        if not self.labels:
            return None
        try:
            return LabelDirectory.from_dict(self.labels)
        except (KeyError, TypeError) as e:
            raise FetcherConfigurationError(f"Invalid label metadata: {e}") from e

    def build(self) -> TraversalOrchestrator:
        """Return an orchestrator wired with a fresh registry and directory.

        The registry still has to be initialized with ``init_all``.
        """
        directory = self.build_directory()
        registry = FetcherRegistry.from_config(self.fetchers, directory=directory)
        return TraversalOrchestrator(
            registry,
            directory=directory,
            default_timeout=self.default_timeout,
        )


__all__ = ["TraversalConfig"]
