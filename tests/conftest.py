"""
Shared fixtures and in-memory fakes for the asset index tests.

The fakes stand in for the HTTP backed clients: they expose the same
request methods the services call, keep their state in memory and record
the calls made against them.
"""
import logging
from datetime import datetime

import pytest

from shared.clients.rag.models.Filter import FilterOp, IndexFilter
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.rag.models.VectorRecord import IndexStats, QueryMatch, VectorRecord
from shared.clients.store.models.Asset import Asset, AssetMetadata, AssetSection, AssetType
from shared.helper.HelperConfig import HelperConfig

# env keys read by the services; cleared so host settings never leak into tests
SERVICE_ENV_KEYS = [
    "CHUNK_STRATEGY",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "CHUNK_PRESERVE_SECTIONS",
    "CHUNK_MAX_CHUNKS",
    "INDEX_UPSERT_BATCH_SIZE",
    "INDEX_EMBED_BATCH_SIZE",
    "INDEX_JOB_BATCH_SIZE",
    "INDEX_JOB_INTERVAL",
    "INDEX_JOB_MAX_ATTEMPTS",
    "INDEX_RECOVERY_INTERVAL",
    "SEARCH_DEFAULT_LIMIT",
    "SEARCH_DEFAULT_THRESHOLD",
    "APP_API_KEY",
    "APP_ALLOW_GLOBAL_SEARCH",
    "RAG_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in SERVICE_ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config():
    return HelperConfig(logger=logging.getLogger("asset_index.tests"))


# ============================================================================
# Fakes
# ============================================================================

def _matches_filter(payload: dict, filter: IndexFilter | None) -> bool:
    if filter is None:
        return True
    for predicate in filter.predicates:
        value = payload.get(predicate.field)
        if predicate.op == FilterOp.EQ and value != predicate.value:
            return False
        if predicate.op == FilterOp.NE and value == predicate.value:
            return False
        if predicate.op == FilterOp.IN and value not in predicate.value:
            return False
    return True


class FakeEmbedClient:
    """Deterministic 3-dimensional embeddings derived from the text length."""

    def __init__(self):
        self.embedded: list[str] = []
        self.fail = False

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        if isinstance(texts, str):
            texts = [texts]
        if self.fail:
            raise Exception("embedding backend down")
        self.embedded.extend(texts)
        return [[float(len(text)), 1.0, 0.0] for text in texts]

    async def embed_text(self, text: str) -> list[float]:
        return (await self.do_embed([text]))[0]

    async def do_fetch_embedding_vector_size(self) -> tuple[int, str]:
        return 3, "Cosine"


class InMemoryRAGClient:
    """Keeps vector records in a dict keyed by logical record id."""

    def __init__(self, ready: bool = True):
        self.records: dict[str, VectorRecord] = {}
        self.ready = ready
        self.queries: list[dict] = []
        self.scored_matches: list[QueryMatch] | None = None
        self.upsert_calls = 0
        self.fail_query = False

    def is_ready(self) -> bool:
        return self.ready

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> bool:
        return False

    async def do_describe_stats(self) -> IndexStats:
        return IndexStats(total_vectors=len(self.records), dimension=3)

    async def do_upsert(self, record: VectorRecord) -> None:
        await self.do_upsert_batch([record])

    async def do_upsert_batch(self, records: list[VectorRecord], max_batch: int | None = None) -> int:
        self.upsert_calls += 1
        for record in records:
            self.records[record.id] = record
        return len(records)

    async def do_delete_by_id(self, record_id: str) -> None:
        self.records.pop(record_id, None)

    async def do_delete_many(self, record_ids: list[str]) -> int:
        for record_id in record_ids:
            self.records.pop(record_id, None)
        return len(record_ids)

    async def do_find_ids(self, filter: IndexFilter | None) -> list[str]:
        return [
            record_id for record_id, record in self.records.items()
            if _matches_filter(record.payload.model_dump(), filter)
        ]

    async def do_query(self, vector: list[float], top_k: int, filter: IndexFilter | None = None, include_metadata: bool = True) -> list[QueryMatch]:
        self.queries.append({"vector": vector, "top_k": top_k, "filter": filter})
        if self.fail_query:
            raise Exception("index query failed")
        if self.scored_matches is not None:
            return self.scored_matches[:top_k]
        return [
            QueryMatch(id=record_id, score=0.9, metadata=record.payload.model_dump())
            for record_id, record in self.records.items()
            if _matches_filter(record.payload.model_dump(), filter)
        ][:top_k]

    async def do_fetch_record(self, record_id: str) -> VectorRecord | None:
        return self.records.get(record_id)

    async def do_scroll_all(self, filter: IndexFilter | None, with_payload, with_vector, page_size: int = 1000) -> ScrollResult:
        points = [
            {"id": record_id, "payload": record.payload.model_dump()}
            for record_id, record in self.records.items()
            if _matches_filter(record.payload.model_dump(), filter)
        ]
        return ScrollResult(result=points, status="ok", time=0)

    def chunk_ids(self, asset_id: str) -> list[str]:
        return sorted(
            record_id for record_id, record in self.records.items()
            if record.payload.asset_id == asset_id and record.payload.type == "chunk"
        )


class FakeStoreClient:
    def __init__(self, assets: list[Asset] | None = None):
        self.assets: dict[str, Asset] = {asset.id: asset for asset in assets or []}
        self.marked: list[tuple[str, datetime]] = []
        self.fetched: list[str] = []

    async def do_fetch_asset(self, asset_id: str) -> Asset | None:
        self.fetched.append(asset_id)
        return self.assets.get(asset_id)

    async def do_fetch_unindexed_assets(self) -> list[Asset]:
        return [asset for asset in self.assets.values() if not asset.indexed]

    async def do_fetch_all_assets(self) -> list[Asset]:
        return list(self.assets.values())

    async def do_mark_indexed(self, asset_id: str, indexed_at: datetime | None = None, indexed: bool = True) -> None:
        self.marked.append((asset_id, indexed_at))


# ============================================================================
# Fixtures
# ============================================================================

def make_asset(asset_id: str = "asset-1", owner_id: str = "owner-1", **kwargs) -> Asset:
    values = {
        "engine": "Platform",
        "id": asset_id,
        "owner_id": owner_id,
        "name": "Quarterly Report",
        "original_name": "report-q3.pdf",
        "type": AssetType.DOCUMENT,
        "mime_type": "application/pdf",
        "tags": ["finance", "q3"],
        "metadata": AssetMetadata(title="Q3 Report", author="Finance Team"),
    }
    values.update(kwargs)
    return Asset(**values)


@pytest.fixture
def embed_client():
    return FakeEmbedClient()


@pytest.fixture
def rag_client():
    return InMemoryRAGClient()


@pytest.fixture
def document_asset():
    return make_asset(
        text="Revenue grew in the third quarter.\n\nCosts were stable.",
        sections=[
            AssetSection(title="Summary", content="Revenue grew in the third quarter.", page=1),
            AssetSection(title="Costs", content="Costs were stable.", page=2),
        ],
    )


@pytest.fixture
def asset_factory():
    return make_asset


@pytest.fixture
def store_factory():
    return FakeStoreClient


@pytest.fixture
def rag_factory():
    return InMemoryRAGClient
