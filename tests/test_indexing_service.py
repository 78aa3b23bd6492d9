"""
Unit tests for IndexingService against the in-memory RAG client.
"""
import pytest

from services.asset_index.chunking import ChunkingOptions, ChunkStrategy
from services.asset_index.IndexingService import IndexingService
from shared.clients.store.models.Asset import AssetSection


@pytest.fixture
def indexing_service(helper_config, rag_client, embed_client):
    return IndexingService(
        helper_config=helper_config,
        rag_client=rag_client,
        embed_client=embed_client,
        chunking_options=ChunkingOptions(strategy=ChunkStrategy.HYBRID, chunk_size=500, overlap=50),
    )


class TestIndexingService:
    @pytest.mark.asyncio
    async def test_add_writes_asset_and_chunk_records(self, indexing_service, rag_client, document_asset):
        assert await indexing_service.do_add_asset(document_asset) is True

        asset_record = rag_client.records["asset-1"]
        assert asset_record.payload.type == "document"
        assert asset_record.payload.owner_id == "owner-1"
        assert asset_record.payload.folder_id == "root"
        assert asset_record.payload.chunk_index is None

        # summary + two sections
        assert rag_client.chunk_ids("asset-1") == ["asset-1_chunk_0", "asset-1_chunk_1", "asset-1_chunk_2"]
        chunk = rag_client.records["asset-1_chunk_1"].payload
        assert chunk.type == "chunk"
        assert chunk.asset_type == "document"
        assert chunk.chunk_index == 1
        assert chunk.chunk_type == "section"
        assert chunk.chunk_title == "Summary"

    @pytest.mark.asyncio
    async def test_asset_without_text_has_no_chunks(self, indexing_service, rag_client, asset_factory):
        await indexing_service.do_add_asset(asset_factory(asset_id="img-1"))

        assert list(rag_client.records) == ["img-1"]

    @pytest.mark.asyncio
    async def test_update_matches_a_fresh_add(self, helper_config, rag_factory, embed_client, document_asset):
        options = ChunkingOptions(chunk_size=500, overlap=50)
        fresh_rag = rag_factory()
        await IndexingService(helper_config, fresh_rag, embed_client, options).do_add_asset(document_asset)

        updated_rag = rag_factory()
        service = IndexingService(helper_config, updated_rag, embed_client, options)
        await service.do_add_asset(document_asset.model_copy(update={
            "sections": document_asset.sections + [AssetSection(title="Outlook", content="Growth ahead.")],
        }))
        await service.do_update_asset(document_asset)

        assert sorted(updated_rag.records) == sorted(fresh_rag.records)
        for record_id, record in fresh_rag.records.items():
            assert updated_rag.records[record_id].payload == record.payload

    @pytest.mark.asyncio
    async def test_remove_sweeps_all_chunk_records(self, indexing_service, rag_client, document_asset, asset_factory):
        other = asset_factory(asset_id="asset-2", text="Unrelated text.")
        await indexing_service.do_add_asset(document_asset)
        await indexing_service.do_add_asset(other)

        assert await indexing_service.do_remove_asset("asset-1") is True

        assert "asset-1" not in rag_client.records
        assert rag_client.chunk_ids("asset-1") == []
        assert "asset-2" in rag_client.records
        assert rag_client.chunk_ids("asset-2")

    @pytest.mark.asyncio
    async def test_unavailable_index_skips_writes(self, helper_config, rag_factory, embed_client, document_asset):
        rag_client = rag_factory(ready=False)
        service = IndexingService(helper_config, rag_client, embed_client)

        assert service.is_available() is False
        assert await service.do_add_asset(document_asset) is False
        assert await service.do_remove_asset("asset-1") is False
        assert await service.do_update_asset(document_asset) is False
        assert rag_client.records == {}
        assert embed_client.embedded == []

    @pytest.mark.asyncio
    async def test_missing_rag_client_is_unavailable(self, helper_config, embed_client):
        service = IndexingService(helper_config, None, embed_client)

        assert service.is_available() is False
        assert await service.do_prepare_index() is False

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, indexing_service, embed_client, document_asset):
        embed_client.fail = True

        with pytest.raises(Exception, match="embedding backend down"):
            await indexing_service.do_add_asset(document_asset)

    @pytest.mark.asyncio
    async def test_batch_add_counts_failures(self, indexing_service, embed_client, asset_factory, monkeypatch):
        good = asset_factory(asset_id="good")
        bad = asset_factory(asset_id="bad")
        original_embed = embed_client.embed_text

        async def embed_text(text):
            if "broken" in text:
                raise Exception("cannot embed")
            return await original_embed(text)

        monkeypatch.setattr(embed_client, "embed_text", embed_text)
        bad = bad.model_copy(update={"name": "broken"})

        counts = await indexing_service.do_batch_add_assets([good, bad])

        assert counts == {"added": 1, "skipped": 0, "failed": 1}

    def test_chunking_options_from_env(self, helper_config, rag_client, embed_client, monkeypatch):
        monkeypatch.setenv("CHUNK_STRATEGY", "Semantic")
        monkeypatch.setenv("CHUNK_SIZE", "600")
        monkeypatch.setenv("CHUNK_OVERLAP", "60")
        monkeypatch.setenv("CHUNK_PRESERVE_SECTIONS", "false")

        options = IndexingService(helper_config, rag_client, embed_client).chunking_options

        assert options.strategy == ChunkStrategy.SEMANTIC
        assert options.chunk_size == 600
        assert options.overlap == 60
        assert options.preserve_sections is False
        assert options.max_chunks == 100
