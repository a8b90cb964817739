"""Tests for TraversalConfig."""

from __future__ import annotations

import json

import pytest

from edgewalk import (
    FetcherConfigurationError,
    InMemoryFetcher,
    Query,
    QueryParam,
    Step,
    TraversalConfig,
    TraversalOrchestrator,
    VertexId,
)

CONFIG = {
    "default_timeout": 5.0,
    "fetchers": {
        "default": {
            "backend": "memory",
            "edges": [
                {"src": "social:user:a", "tgt": "social:user:b", "label": "knows",
                 "properties": {"score": 0.5}},
                {"src": "social:user:b", "tgt": "social:user:c", "label": "knows",
                 "properties": {"score": 0.5}},
            ],
        },
    },
    "labels": {
        "labels": [
            {"name": "knows", "src_service": "social", "src_column": "user",
             "tgt_service": "social", "tgt_column": "user"},
        ],
    },
}


class TestLoading:

    def test_defaults(self):
        config = TraversalConfig()
        assert config.default_timeout is None
        assert config.fetchers == {"default": {"backend": "memory"}}
        assert config.build_directory() is None

    def test_from_dict(self):
        config = TraversalConfig.from_dict(CONFIG)
        assert config.default_timeout == 5.0
        assert config.build_directory().has_label("knows")

    def test_unknown_keys_rejected(self):
        with pytest.raises(FetcherConfigurationError, match="retries"):
            TraversalConfig.from_dict({"retries": 3})

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(FetcherConfigurationError, match="default_timeout"):
            TraversalConfig(default_timeout=0)

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "edgewalk.json"
        path.write_text(json.dumps(CONFIG))
        assert TraversalConfig.from_json_file(path).fetchers == CONFIG["fetchers"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FetcherConfigurationError, match="Cannot read"):
            TraversalConfig.from_json_file(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(FetcherConfigurationError):
            TraversalConfig.from_json_file(path)

    def test_json_must_be_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        with pytest.raises(FetcherConfigurationError, match="JSON object"):
            TraversalConfig.from_json_file(path)

    def test_bad_label_metadata(self):
        config = TraversalConfig(labels={"labels": [{"name": "knows"}]})
        with pytest.raises(FetcherConfigurationError, match="label metadata"):
            config.build_directory()


class TestBuild:

    def test_build_wires_orchestrator(self):
        orchestrator = TraversalConfig.from_dict(CONFIG).build()
        assert isinstance(orchestrator, TraversalOrchestrator)
        assert orchestrator.directory.has_label("knows")
        assert isinstance(orchestrator.registry.fetcher_for("knows"), InMemoryFetcher)
        assert not orchestrator.registry.initialized

    @pytest.mark.asyncio
    async def test_build_init_and_traverse(self):
        orchestrator = TraversalConfig.from_dict(CONFIG).build()
        await orchestrator.registry.init_all()
        try:
            step = Step([QueryParam("knows")])
            result = await orchestrator.traverse(
                Query(vertices=[VertexId("social", "user", "a")], steps=[step, step])
            )
        finally:
            orchestrator.registry.close_all()
        assert [(e.tgt.id, e.score) for e in result.edges] == [("c", 0.25)]
