"""Indexing service.

Turns assets and their chunks into vector records via an EmbedClient and
writes them to the RAG backend. Updates are two explicit phases (remove,
then add), so stale chunks of a previous run never survive a re-index.
"""

from typing import Awaitable, Callable

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Filter import IndexFilterBuilder
from shared.clients.rag.models.VectorRecord import CHUNK_RECORD_TYPE, VectorPayload, VectorRecord, make_chunk_record_id
from shared.clients.store.models.Asset import Asset
from shared.helper.HelperConfig import HelperConfig
from services.asset_index.chunking import Chunk, ChunkingOptions, ChunkStrategy, chunk_asset
from services.asset_index.searchable_text import build_asset_text, build_chunk_text


class IndexingService:
    """Writes asset and chunk vector records to the RAG backend."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface | None,
        embed_client: EmbedClientInterface,
        chunking_options: ChunkingOptions | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self.chunking_options = chunking_options or self._load_chunking_options(helper_config)
        self.upsert_batch_size = int(helper_config.get_number_val("INDEX_UPSERT_BATCH_SIZE", default=100))
        self.embed_batch_size = int(helper_config.get_number_val("INDEX_EMBED_BATCH_SIZE", default=32))

    @staticmethod
    def _load_chunking_options(helper_config: HelperConfig) -> ChunkingOptions:
        return ChunkingOptions(
            strategy=ChunkStrategy(helper_config.get_string_val("CHUNK_STRATEGY", default="hybrid").lower()),
            chunk_size=int(helper_config.get_number_val("CHUNK_SIZE", default=1000)),
            overlap=int(helper_config.get_number_val("CHUNK_OVERLAP", default=200)),
            preserve_sections=helper_config.get_bool_val("CHUNK_PRESERVE_SECTIONS", default=True),
            max_chunks=int(helper_config.get_number_val("CHUNK_MAX_CHUNKS", default=100)),
        )

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def is_available(self) -> bool:
        """True if a RAG backend is configured and booted."""
        return self._rag_client is not None and self._rag_client.is_ready()

    ##########################################
    ############ RECORD BUILDER ##############
    ##########################################

    def build_asset_payload(self, asset: Asset, searchable_text: str) -> VectorPayload:
        return VectorPayload(
            record_id=asset.id,
            asset_id=asset.id,
            owner_id=asset.owner_id,
            type=asset.type.value,
            asset_type=asset.type.value,
            name=asset.name,
            original_name=asset.original_name,
            mime_type=asset.mime_type,
            tags=asset.tags,
            folder_id=asset.folder_id or "root",
            created=asset.created_at.isoformat() if asset.created_at else None,
            searchable_text=searchable_text,
        )

    def build_chunk_payload(self, chunk: Chunk, parent: Asset, searchable_text: str) -> VectorPayload:
        payload = self.build_asset_payload(parent, searchable_text)
        return payload.model_copy(update={
            "record_id": make_chunk_record_id(parent.id, chunk.index),
            "type": CHUNK_RECORD_TYPE,
            "chunk_index": chunk.index,
            "chunk_type": chunk.type.value,
            "chunk_title": chunk.title,
            "word_count": chunk.word_count,
        })

    async def _embed_in_batches(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for batch_start in range(0, len(texts), self.embed_batch_size):
            vectors.extend(await self._embed_client.do_embed(texts[batch_start: batch_start + self.embed_batch_size]))
        return vectors

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def do_prepare_index(self) -> bool:
        """Create the collection with the embedding model's vector size if it is missing.

        Returns:
            bool: True if the collection was created.
        """
        if not self.is_available():
            return False
        vector_size, distance = await self._embed_client.do_fetch_embedding_vector_size()
        return await self._rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)

    async def do_add_asset(self, asset: Asset) -> bool:
        """Embed and upsert the asset record and, if it has text, its chunk records.

        Args:
            asset (Asset): The asset to index.

        Returns:
            bool: True if records were written, False if the index is unavailable.

        Raises:
            Exception: Propagated if embedding or upsert fails.
        """
        if not self.is_available():
            self.logging.debug("Index unavailable, skipping add of asset id=%s", asset.id)
            return False

        searchable_text = build_asset_text(asset)
        vector = await self._embed_client.embed_text(searchable_text)
        await self._rag_client.do_upsert(VectorRecord(
            id=asset.id,
            vector=vector,
            payload=self.build_asset_payload(asset, searchable_text),
        ))

        chunk_count = 0
        if asset.has_chunkable_content():
            chunks = chunk_asset(asset, self.chunking_options)
            chunk_count = await self.do_add_chunks(chunks, asset)

        self.logging.info("Indexed asset id=%s ('%s'): 1 asset record, %d chunks.", asset.id, asset.name, chunk_count)
        return True

    async def do_add_chunks(self, chunks: list[Chunk], parent: Asset) -> int:
        """Embed chunks in batches and upsert them in slices of at most INDEX_UPSERT_BATCH_SIZE.

        Returns:
            int: The number of chunk records written.
        """
        if not chunks or not self.is_available():
            return 0
        texts = [build_chunk_text(chunk, parent) for chunk in chunks]
        vectors = await self._embed_in_batches(texts)
        records = [
            VectorRecord(
                id=make_chunk_record_id(parent.id, chunk.index),
                vector=vector,
                payload=self.build_chunk_payload(chunk, parent, text),
            )
            for chunk, text, vector in zip(chunks, texts, vectors)
        ]
        return await self._rag_client.do_upsert_batch(records, max_batch=self.upsert_batch_size)

    async def do_remove_asset(self, asset_id: str) -> bool:
        """Delete the asset record and sweep all of its chunk records.

        Does not need the asset to still exist in the entity store.

        Returns:
            bool: True if the deletes were sent, False if the index is unavailable.
        """
        if not self.is_available():
            self.logging.debug("Index unavailable, skipping removal of asset id=%s", asset_id)
            return False
        await self._rag_client.do_delete_by_id(asset_id)
        removed = await self.do_remove_asset_chunks(asset_id)
        self.logging.info("Removed asset id=%s from index (%d chunk records).", asset_id, removed)
        return True

    async def do_remove_asset_chunks(self, asset_id: str) -> int:
        """Find chunk record ids of an asset by filter, then delete them in one pass."""
        if not self.is_available():
            return 0
        chunk_filter = (
            IndexFilterBuilder()
            .equals("asset_id", asset_id)
            .equals("type", CHUNK_RECORD_TYPE)
            .build()
        )
        chunk_ids = await self._rag_client.do_find_ids(chunk_filter)
        return await self._rag_client.do_delete_many(chunk_ids)

    async def do_update_asset(self, asset: Asset) -> bool:
        """Replace all records of an asset.

        Phase 1 removes the asset and chunk records, phase 2 adds them again.
        Between the phases the asset is absent from search results; it is
        never visible with a mix of old and new payload fields.
        """
        if not self.is_available():
            self.logging.debug("Index unavailable, skipping update of asset id=%s", asset.id)
            return False
        await self.do_remove_asset(asset.id)
        return await self.do_add_asset(asset)

    async def do_batch_add_assets(
        self,
        assets: list[Asset],
        on_added: Callable[[Asset], Awaitable[None]] | None = None,
    ) -> dict[str, int]:
        """Add many assets. A failing asset is logged and the rest continue.

        Args:
            assets (list[Asset]): Assets to add.
            on_added (Callable | None): Awaited with each asset that was written.

        Returns:
            dict[str, int]: Counts of "added", "skipped" and "failed" assets.
        """
        counts = {"added": 0, "skipped": 0, "failed": 0}
        for asset in assets:
            try:
                if await self.do_add_asset(asset):
                    if on_added is not None:
                        await on_added(asset)
                    counts["added"] += 1
                else:
                    counts["skipped"] += 1
            except Exception as exc:
                counts["failed"] += 1
                self.logging.error("Batch add failed for asset id=%s: %s", asset.id, exc)
        self.logging.info(
            "Batch add complete: %d added, %d skipped, %d failed.",
            counts["added"], counts["skipped"], counts["failed"],
        )
        return counts
