"""Basic usage example for edgewalk-lib."""

import asyncio
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


from edgewalk import (
    DuplicatePolicy,
    Query,
    QueryParam,
    Step,
    TraversalConfig,
    VertexId,
)


CONFIG = {
    "default_timeout": 2.0,
    "fetchers": {
        "default": {
            "backend": "memory",
            "edges": [
                {"src": "social:user:alice", "tgt": "social:user:bob", "label": "knows",
                 "properties": {"score": 0.9}},
                {"src": "social:user:alice", "tgt": "social:user:carol", "label": "knows",
                 "properties": {"score": 0.5}},
                {"src": "social:user:bob", "tgt": "social:user:erin", "label": "knows",
                 "properties": {"score": 0.8}},
                {"src": "social:user:carol", "tgt": "social:user:erin", "label": "knows",
                 "properties": {"score": 0.6}},
                {"src": "social:user:carol", "tgt": "web:page:python", "label": "follows"},
            ],
        },
    },
    "labels": {
        "labels": [
            {"name": "knows", "src_service": "social", "src_column": "user",
             "tgt_service": "social", "tgt_column": "user"},
            {"name": "follows", "src_service": "social", "src_column": "user",
             "tgt_service": "web", "tgt_column": "page"},
        ],
    },
}


async def main():
    print("=" * 60)
    print("edgewalk-lib - Basic Usage Example")
    print("=" * 60)

    # 1. Build the orchestrator from config
    print("\n1. Building orchestrator...")
    orchestrator = TraversalConfig.from_dict(CONFIG).build()
    await orchestrator.registry.init_all()
    print(f"   Labels: {orchestrator.directory.label_names}")
    print(f"   Fetchers: {[f.fetcher_id for f in orchestrator.registry.fetchers()]}")

    alice = VertexId("social", "user", "alice")

    # 2. Single label lookup
    print("\n2. Friends of alice...")
    for edge in await orchestrator.get_edges(alice, "knows"):
        print(f"   {edge.src} -> {edge.tgt}  score={edge.properties['score']}")

    # 3. Two-step traversal
    print("\n3. Friends of friends...")
    query = Query(
        vertices=[alice],
        steps=[Step([QueryParam("knows")]), Step([QueryParam("knows")])],
    )
    result = await orchestrator.traverse(query)
    for ews in result.edges:
        print(f"   {ews.src} -> {ews.tgt}  score={ews.score:.3f}")

    # 4. Collapse duplicate edges
    print("\n4. Friends of friends, duplicates summed...")
    query = Query(
        vertices=[alice],
        steps=[Step([QueryParam("knows")]), Step([QueryParam("knows"), QueryParam("follows")])],
        return_intermediate=True,
        duplicate_policy=DuplicatePolicy.SUM,
    )
    result = await orchestrator.traverse(query)
    print(f"   {len(result)} edges, degraded={result.degraded}")
    for ews in result:
        path = " -> ".join(str(e.tgt) for e in ews.path())
        print(f"   {ews.score:.3f}  {path}")

    # 5. Cleanup
    print("\n5. Closing fetchers...")
    orchestrator.registry.close_all()

    print("\n" + "=" * 60)
    print("Example completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
