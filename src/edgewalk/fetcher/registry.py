"""Per-label fetcher selection and process-wide fetcher lifecycle.

Public API:
    create_fetcher: Factory for building an uninitialized fetcher by backend name.
    FetcherRegistry: Maps labels to fetchers; initializes and closes them once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from ..exceptions import FetcherConfigurationError
from ..metadata import LabelDirectory
from .memory_fetcher import InMemoryFetcher
from .protocol import Fetcher

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "kuzu")


def create_fetcher(
    backend: str = "memory",
    fetcher_id: str | None = None,
    directory: LabelDirectory | None = None,
) -> Fetcher:
    """Create an uninitialized fetcher.

    Args:
        backend: ``"memory"`` (in-process) or ``"kuzu"`` (embedded Kuzu).
        fetcher_id: Optional identifier.
        directory: Metadata directory, used by backends that type neighbours.

    Returns:
        A Fetcher implementation; call ``init`` before use.

    Raises:
        FetcherConfigurationError: If *backend* is unrecognised.
    """
    if backend == "memory":
        return InMemoryFetcher(fetcher_id=fetcher_id)
    elif backend == "kuzu":
        from .kuzu_fetcher import KuzuFetcher

        return KuzuFetcher(fetcher_id=fetcher_id, directory=directory)
    else:
        raise FetcherConfigurationError(
            f"Unknown backend: {backend!r}.  Choose from: 'memory', 'kuzu'"
        )


class FetcherRegistry:
    """Selects the fetcher serving each label.

    Fetchers are process-wide: initialize the registry once at startup
    with ``init_all`` and tear it down once at shutdown with ``close_all``.

    Args:
        default: Fetcher for labels without a dedicated one.
        by_label: Dedicated fetchers keyed by label name.
        configs: Options passed to each fetcher's ``init``, keyed by fetcher_id.
    """

    def __init__(
        self,
        default: Fetcher | None = None,
        by_label: Mapping[str, Fetcher] | None = None,
        configs: Mapping[str, Mapping[str, Any]] | None = None,
    ) -> None:
        self._default = default
        self._by_label = dict(by_label or {})
        self._configs = {k: dict(v) for k, v in (configs or {}).items()}
        self._initialized = False
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        directory: LabelDirectory | None = None,
    ) -> FetcherRegistry:
        """Build a registry from plain data.

        Expected shape::

            {
                "default": {"backend": "memory"},
                "fetchers": {
                    "graph": {"backend": "kuzu", "db_path": "/var/lib/graph"},
                },
                "labels": {"knows": "graph"},
            }

        Every option except ``backend`` is passed to the fetcher's ``init``.

        Raises:
            FetcherConfigurationError: On an unknown backend, a label
                pointing at an undeclared fetcher, or a fetcher named
                "default" next to a top-level default.
        """
        named: dict[str, Fetcher] = {}
        configs: dict[str, dict[str, Any]] = {}

        def build(name: str, options: Mapping[str, Any]) -> Fetcher:
            if name in configs:
                raise FetcherConfigurationError(
                    f"Fetcher name {name!r} clashes with the top-level default fetcher"
                )
            opts = dict(options)
            backend = opts.pop("backend", "memory")
            fetcher = create_fetcher(backend, fetcher_id=name, directory=directory)
            configs[fetcher.fetcher_id] = opts
            return fetcher

        for name, options in config.get("fetchers", {}).items():
            named[name] = build(name, options)

        default = None
        if "default" in config:
            default = build("default", config["default"])

        by_label: dict[str, Fetcher] = {}
        for label, name in config.get("labels", {}).items():
            if name not in named:
                raise FetcherConfigurationError(
                    f"Label {label!r} refers to undeclared fetcher {name!r}"
                )
            by_label[label] = named[name]

        return cls(default=default, by_label=by_label, configs=configs)

    # ── selection ─────────────────────────────────────────────

    def register(self, label: str, fetcher: Fetcher) -> None:
        if self._initialized:
            raise FetcherConfigurationError("Cannot register fetchers after init_all()")
        self._by_label[label] = fetcher

    def fetcher_for(self, label: str) -> Fetcher:
        """Return the fetcher serving *label*.

        Raises:
            FetcherConfigurationError: If no fetcher serves the label.
        """
        fetcher = self._by_label.get(label, self._default)
        if fetcher is None:
            raise FetcherConfigurationError(f"No fetcher configured for label {label!r}")
        return fetcher

    def fetchers(self) -> list[Fetcher]:
        """Distinct fetchers, default first."""
        seen: dict[int, Fetcher] = {}
        if self._default is not None:
            seen[id(self._default)] = self._default
        for fetcher in self._by_label.values():
            seen.setdefault(id(fetcher), fetcher)
        return list(seen.values())

    # ── lifecycle ─────────────────────────────────────────────

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init_all(self) -> FetcherRegistry:
        """Initialize every fetcher once.  Later calls are no-ops.

        Raises:
            FetcherConfigurationError: If any fetcher fails to initialize.
                Fetchers that did initialize are closed again.
        """
        if self._initialized:
            return self
        fetchers = self.fetchers()
        results = await asyncio.gather(
            *(f.init(self._configs.get(f.fetcher_id, {})) for f in fetchers),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for fetcher, result in zip(fetchers, results):
                if not isinstance(result, BaseException):
                    fetcher.close()
            error = errors[0]
            if isinstance(error, FetcherConfigurationError):
                raise error
            raise FetcherConfigurationError(f"Fetcher init failed: {error}") from error
        self._initialized = True
        logger.debug("Initialized %d fetchers", len(fetchers))
        return self

    def close_all(self) -> None:
        """Close every fetcher.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        for fetcher in self.fetchers():
            try:
                fetcher.close()
            except Exception as e:
                logger.error("Error closing fetcher %s: %s", fetcher.fetcher_id, e)


__all__ = ["create_fetcher", "FetcherRegistry", "BACKENDS"]
