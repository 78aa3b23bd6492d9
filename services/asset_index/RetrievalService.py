"""Retrieval service: owner-scoped semantic search against the vector index.

Embeds the query, builds an immutable filter from the search options,
runs a top-k query and drops matches below the similarity threshold.
Search never raises for an unavailable index; it returns no results.
"""

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.Filter import IndexFilter, IndexFilterBuilder
from shared.clients.rag.models.VectorRecord import CHUNK_RECORD_TYPE
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import HybridSearchOptions, HybridSearchResult, SearchHit, SearchOptions


class RetrievalService:
    """Orchestrates embedding, vector retrieval and result assembly for asset search."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface | None,
        embed_client: EmbedClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embed_client = embed_client
        self.default_limit = int(helper_config.get_number_val("SEARCH_DEFAULT_LIMIT", default=20))
        self.default_threshold = float(helper_config.get_number_val("SEARCH_DEFAULT_THRESHOLD", default=0.7))

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def is_available(self) -> bool:
        return self._rag_client is not None and self._rag_client.is_ready()

    def default_options(self) -> SearchOptions:
        return SearchOptions(limit=self.default_limit, threshold=self.default_threshold)

    ##########################################
    ############ FILTER BUILDER ##############
    ##########################################

    @staticmethod
    def build_asset_filter(owner_id: str | None, options: SearchOptions) -> IndexFilter:
        """Filter for asset-level search. Chunk records are excluded unless a type is given."""
        builder = IndexFilterBuilder().owner(owner_id)
        if options.type:
            builder.equals("type", options.type)
        else:
            builder.not_equals("type", CHUNK_RECORD_TYPE)
        return builder.equals("folder_id", options.folder_id).equals("asset_id", options.asset_id).build()

    @staticmethod
    def build_chunk_filter(owner_id: str | None, options: SearchOptions) -> IndexFilter:
        """Filter for chunk search: type pinned to "chunk", optionally one folder or parent asset."""
        return (
            IndexFilterBuilder()
            .owner(owner_id)
            .equals("type", CHUNK_RECORD_TYPE)
            .equals("folder_id", options.folder_id)
            .equals("asset_id", options.asset_id)
            .build()
        )

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def _search(self, query: str, filter: IndexFilter, limit: int, threshold: float, label: str) -> list[SearchHit]:
        if not self.is_available():
            self.logging.debug("Index unavailable, %s search returns no results.", label)
            return []
        if not query or not query.strip():
            return []
        try:
            vector = await self._embed_client.embed_text(query)
            matches = await self._rag_client.do_query(vector, top_k=limit, filter=filter, include_metadata=True)
        except Exception as exc:
            self.logging.error("%s search failed for query %r: %s", label.capitalize(), query[:80], exc)
            return []

        hits = [
            SearchHit(id=match.id, score=match.score, metadata=match.metadata)
            for match in matches
            if match.score >= threshold
        ]
        self.logging.info(
            "%s search: query=%r, %d of %d matches above threshold %.2f",
            label.capitalize(), query[:80], len(hits), len(matches), threshold,
        )
        return hits

    async def search_assets(self, query: str, owner_id: str | None, options: SearchOptions | None = None) -> list[SearchHit]:
        """Search asset records.

        Args:
            query (str): Natural language query.
            owner_id (str | None): Owner scope. None or empty means all owners.
            options (SearchOptions | None): Limit, threshold and scoping filters.

        Returns:
            list[SearchHit]: Matches above the threshold, in descending score order.
        """
        options = options or self.default_options()
        return await self._search(
            query, self.build_asset_filter(owner_id, options), options.limit, options.threshold, "asset"
        )

    async def search_document_chunks(self, query: str, owner_id: str | None, options: SearchOptions | None = None) -> list[SearchHit]:
        """Search chunk records, optionally within one folder or asset."""
        options = options or self.default_options()
        return await self._search(
            query, self.build_chunk_filter(owner_id, options), options.limit, options.threshold, "chunk"
        )

    async def hybrid_search(self, query: str, owner_id: str | None, options: HybridSearchOptions | None = None) -> HybridSearchResult:
        """Search assets and chunks with one call.

        Args:
            query (str): Natural language query.
            owner_id (str | None): Owner scope. None or empty means all owners.
            options (HybridSearchOptions | None): Which record kinds to include and per-kind limits.

        Returns:
            HybridSearchResult: Asset hits and chunk hits, each in descending score order.
        """
        options = options or HybridSearchOptions(limit=self.default_limit, threshold=self.default_threshold)
        assets: list[SearchHit] = []
        chunks: list[SearchHit] = []
        if options.include_assets:
            assets = await self.search_assets(query, owner_id, SearchOptions(
                limit=options.asset_limit or options.limit, threshold=options.threshold,
            ))
        if options.include_chunks:
            chunks = await self.search_document_chunks(query, owner_id, SearchOptions(
                limit=options.chunk_limit or options.limit, threshold=options.threshold,
            ))
        return HybridSearchResult(assets=assets, chunks=chunks, total=len(assets) + len(chunks))

    async def find_similar_assets(self, asset_id: str, owner_id: str | None, limit: int = 10, threshold: float = 0.0) -> list[SearchHit]:
        """Find assets whose vectors are close to the vector of asset_id.

        Returns no results if the asset is not indexed or belongs to a different owner.
        """
        if not self.is_available():
            return []
        try:
            record = await self._rag_client.do_fetch_record(asset_id)
            if record is None:
                return []
            if owner_id and record.payload.owner_id != str(owner_id):
                self.logging.warning("Similarity lookup for asset id=%s denied for owner %s.", asset_id, owner_id)
                return []
            similar_filter = (
                IndexFilterBuilder()
                .owner(owner_id)
                .not_equals("type", CHUNK_RECORD_TYPE)
                .not_equals("asset_id", asset_id)
                .build()
            )
            matches = await self._rag_client.do_query(record.vector, top_k=limit, filter=similar_filter, include_metadata=True)
        except Exception as exc:
            self.logging.error("Similarity search failed for asset id=%s: %s", asset_id, exc)
            return []
        return [
            SearchHit(id=match.id, score=match.score, metadata=match.metadata)
            for match in matches
            if match.score >= threshold
        ]

    async def get_asset_chunks(self, asset_id: str, owner_id: str | None, limit: int = 50, start_index: int = 0) -> list[dict]:
        """Return the stored chunk payloads of an asset, ordered by chunk index."""
        if not self.is_available():
            return []
        chunk_filter = (
            IndexFilterBuilder()
            .owner(owner_id)
            .equals("asset_id", asset_id)
            .equals("type", CHUNK_RECORD_TYPE)
            .build()
        )
        try:
            scroll_result = await self._rag_client.do_scroll_all(filter=chunk_filter, with_payload=True, with_vector=False)
        except Exception as exc:
            self.logging.error("Listing chunks failed for asset id=%s: %s", asset_id, exc)
            return []
        payloads = [point.get("payload") or {} for point in scroll_result.result]
        payloads = [p for p in payloads if (p.get("chunk_index") or 0) >= start_index]
        payloads.sort(key=lambda p: p.get("chunk_index") or 0)
        return payloads[:limit]

    ##########################################
    ################ STATS ###################
    ##########################################

    async def get_stats(self) -> dict:
        if not self.is_available():
            return {"available": False}
        try:
            stats = await self._rag_client.do_describe_stats()
        except Exception as exc:
            self.logging.error("Fetching index stats failed: %s", exc)
            return {"available": False}
        return {"available": True, "total_vectors": stats.total_vectors, "dimension": stats.dimension}
