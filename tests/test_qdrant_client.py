"""
Unit tests for RAGClientQdrant against a mocked Qdrant HTTP API.
"""
import json

import httpx
import pytest

from shared.clients.rag.models.Filter import IndexFilterBuilder
from shared.clients.rag.models.VectorRecord import VectorPayload, VectorRecord
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant, make_point_id


@pytest.fixture
def qdrant_env(monkeypatch):
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant:6333")
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "assets")
    monkeypatch.setenv("RAG_QDRANT_API_KEY", "secret")


@pytest.fixture
def qdrant_client(helper_config, qdrant_env):
    return RAGClientQdrant(helper_config=helper_config)


class MockQdrant:
    """Records requests and answers them from a route table."""

    def __init__(self, routes: dict[tuple[str, str], dict]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        body = self.routes.get((request.method, request.url.path))
        if body is None:
            return httpx.Response(404, json={"status": {"error": "not found"}})
        return httpx.Response(200, json=body)

    def json_body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


def test_point_ids_are_deterministic_uuids():
    assert make_point_id("asset-1_chunk_0") == make_point_id("asset-1_chunk_0")
    assert make_point_id("asset-1_chunk_0") != make_point_id("asset-1_chunk_1")
    assert len(make_point_id("asset-1")) == 36


def test_missing_base_url_fails_configuration(helper_config, monkeypatch):
    monkeypatch.delenv("RAG_QDRANT_BASE_URL", raising=False)
    monkeypatch.setenv("RAG_QDRANT_COLLECTION", "assets")

    with pytest.raises(ValueError):
        RAGClientQdrant(helper_config=helper_config)


def test_translate_filter(qdrant_client):
    index_filter = (
        IndexFilterBuilder()
        .owner("owner-1")
        .not_equals("type", "chunk")
        .within("asset_type", ["image", "video"])
        .build()
    )

    assert qdrant_client.translate_filter(index_filter) == {
        "must": [
            {"key": "owner_id", "match": {"value": "owner-1"}},
            {"key": "asset_type", "match": {"any": ["image", "video"]}},
        ],
        "must_not": [{"key": "type", "match": {"value": "chunk"}}],
    }
    assert qdrant_client.translate_filter(IndexFilterBuilder().build()) == {}


def test_unscoped_query_payload_has_no_filter(qdrant_client):
    payload = qdrant_client.get_query_payload([0.1, 0.2], 5, IndexFilterBuilder().owner(None).build(), True)

    assert "filter" not in payload
    assert payload["limit"] == 5
    assert payload["with_payload"] is True


@pytest.mark.asyncio
async def test_upsert_sends_uuid_ids_and_waits(qdrant_client):
    mock = MockQdrant({("PUT", "/collections/assets/points"): {"status": "ok", "result": {}}})
    await qdrant_client.boot(transport=httpx.MockTransport(mock))

    record = VectorRecord(
        id="asset-1_chunk_0",
        vector=[0.1, 0.2, 0.3],
        payload=VectorPayload(record_id="asset-1_chunk_0", asset_id="asset-1", owner_id="owner-1", type="chunk"),
    )
    written = await qdrant_client.do_upsert_batch([record, record, record], max_batch=2)
    await qdrant_client.close()

    assert written == 3
    assert len(mock.requests) == 2
    assert mock.requests[0].url.params["wait"] == "true"
    assert mock.requests[0].headers["api-key"] == "secret"
    point = mock.json_body(0)["points"][0]
    assert point["id"] == make_point_id("asset-1_chunk_0")
    assert point["payload"]["record_id"] == "asset-1_chunk_0"


@pytest.mark.asyncio
async def test_query_maps_matches_to_record_ids(qdrant_client):
    mock = MockQdrant({
        ("POST", "/collections/assets/points/search"): {
            "status": "ok",
            "result": [
                {"id": make_point_id("asset-1"), "score": 0.91, "payload": {"record_id": "asset-1", "name": "Report"}},
                {"id": "raw-point", "score": 0.5, "payload": {}},
            ],
        },
    })
    await qdrant_client.boot(transport=httpx.MockTransport(mock))

    matches = await qdrant_client.do_query([0.1], top_k=2, filter=IndexFilterBuilder().owner("owner-1").build())
    await qdrant_client.close()

    assert [(m.id, m.score) for m in matches] == [("asset-1", 0.91), ("raw-point", 0.5)]
    assert mock.json_body(0)["filter"] == {"must": [{"key": "owner_id", "match": {"value": "owner-1"}}]}


@pytest.mark.asyncio
async def test_find_ids_follows_scroll_pages(qdrant_client):
    pages = iter([
        {"result": {"points": [{"id": "p1", "payload": {"record_id": "asset-1_chunk_0"}}], "next_page_offset": "p2"}},
        {"result": {"points": [{"id": "p2", "payload": {"record_id": "asset-1_chunk_1"}}], "next_page_offset": None}},
    ])
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.endswith("/points/count"):
            return httpx.Response(200, json={"result": {"count": 2}})
        return httpx.Response(200, json=next(pages))

    await qdrant_client.boot(transport=httpx.MockTransport(handler))
    ids = await qdrant_client.do_find_ids(IndexFilterBuilder().equals("asset_id", "asset-1").build())
    await qdrant_client.close()

    assert ids == ["asset-1_chunk_0", "asset-1_chunk_1"]
    second_scroll = json.loads(requests[2].content)
    assert second_scroll["offset"] == "p2"
    assert second_scroll["with_payload"] == ["record_id"]


@pytest.mark.asyncio
async def test_delete_many_skips_empty_input(qdrant_client):
    mock = MockQdrant({})
    await qdrant_client.boot(transport=httpx.MockTransport(mock))

    assert await qdrant_client.do_delete_many([]) == 0
    await qdrant_client.close()
    assert mock.requests == []


@pytest.mark.asyncio
async def test_stats_and_collection_creation(qdrant_client):
    mock = MockQdrant({
        ("GET", "/collections/assets/exists"): {"result": {"exists": False}},
        ("PUT", "/collections/assets"): {"result": True},
        ("GET", "/collections/assets"): {
            "result": {"points_count": 42, "config": {"params": {"vectors": {"size": 768, "distance": "Cosine"}}}},
        },
    })
    await qdrant_client.boot(transport=httpx.MockTransport(mock))

    assert await qdrant_client.do_ensure_collection(vector_size=768) is True
    stats = await qdrant_client.do_describe_stats()
    await qdrant_client.close()

    assert mock.json_body(1) == {"vectors": {"size": 768, "distance": "Cosine"}}
    assert stats.total_vectors == 42
    assert stats.dimension == 768


@pytest.mark.asyncio
async def test_failed_write_raises(qdrant_client):
    await qdrant_client.boot(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))

    with pytest.raises(Exception, match="status 500"):
        await qdrant_client.do_delete_by_id("asset-1")
    await qdrant_client.close()


@pytest.mark.asyncio
async def test_healthcheck_marks_client_ready(qdrant_client):
    mock = MockQdrant({("GET", "/healthz"): {}})
    assert qdrant_client.is_ready() is False

    await qdrant_client.boot(transport=httpx.MockTransport(mock))
    await qdrant_client.do_healthcheck()

    assert qdrant_client.is_ready() is True
    await qdrant_client.close()
    assert qdrant_client.is_ready() is False
