"""Pydantic models for search options, results and the search API."""

from pydantic import BaseModel, Field


class SearchOptions(BaseModel):
    """Scoping and ranking options of a single vector search.

    Attributes:
        limit:     Maximum number of results (top-k of the index query).
        threshold: Minimum similarity score a match must reach.
        type:      Restrict to one record type (asset type, or "chunk").
        folder_id: Restrict to one folder ("root" for top-level assets).
        asset_id:  Restrict to the records of one asset.
    """

    limit: int = Field(default=20, ge=1, le=1000)
    threshold: float = 0.7
    type: str | None = None
    folder_id: str | None = None
    asset_id: str | None = None


class HybridSearchOptions(BaseModel):
    limit: int = Field(default=20, ge=1, le=1000)
    threshold: float = 0.7
    include_assets: bool = True
    include_chunks: bool = True
    asset_limit: int | None = Field(default=None, ge=1)
    chunk_limit: int | None = Field(default=None, ge=1)


class SearchHit(BaseModel):
    """A single search result: the similarity score and the stored payload."""

    id: str
    score: float
    metadata: dict = {}


class HybridSearchResult(BaseModel):
    assets: list[SearchHit] = []
    chunks: list[SearchHit] = []
    total: int = 0


##########################################
################## API ###################
##########################################

class SearchRequest(BaseModel):
    """Incoming natural language search query.

    owner_id None requests an unscoped search across all owners, which the
    API only accepts when global search is enabled.
    """

    query: str = Field(min_length=1)
    owner_id: str | None = None
    limit: int | None = Field(default=None, ge=1, le=1000)
    threshold: float | None = None
    type: str | None = None
    folder_id: str | None = None
    asset_id: str | None = None

    def to_options(self, default_limit: int, default_threshold: float) -> SearchOptions:
        return SearchOptions(
            limit=self.limit or default_limit,
            threshold=self.threshold if self.threshold is not None else default_threshold,
            type=self.type,
            folder_id=self.folder_id,
            asset_id=self.asset_id,
        )


class HybridSearchRequest(BaseModel):
    query: str = Field(min_length=1)
    owner_id: str | None = None
    limit: int | None = Field(default=None, ge=1, le=1000)
    threshold: float | None = None
    include_assets: bool = True
    include_chunks: bool = True
    asset_limit: int | None = Field(default=None, ge=1)
    chunk_limit: int | None = Field(default=None, ge=1)

    def to_options(self, default_limit: int, default_threshold: float) -> HybridSearchOptions:
        return HybridSearchOptions(
            limit=self.limit or default_limit,
            threshold=self.threshold if self.threshold is not None else default_threshold,
            include_assets=self.include_assets,
            include_chunks=self.include_chunks,
            asset_limit=self.asset_limit,
            chunk_limit=self.chunk_limit,
        )


class SearchResponse(BaseModel):
    """Response payload returned after a search."""

    query: str
    results: list[SearchHit]
    total: int


class HybridSearchResponse(BaseModel):
    query: str
    assets: list[SearchHit]
    chunks: list[SearchHit]
    total: int
