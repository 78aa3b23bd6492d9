"""Search router: owner-scoped semantic search against the vector index."""

from fastapi import APIRouter, Depends, Query, Request

from shared.dependencies.auth import resolve_owner_scope, verify_api_key
from shared.models.search import HybridSearchRequest, HybridSearchResponse, SearchHit, SearchRequest, SearchResponse

search_router = APIRouter(prefix="/search", tags=["Search"], dependencies=[Depends(verify_api_key)])


@search_router.post("/assets")
async def search_assets(request: Request, body: SearchRequest) -> SearchResponse:
    """Search asset records.

    A missing owner_id is an unscoped search across all owners and is
    rejected with 403 unless APP_ALLOW_GLOBAL_SEARCH is enabled.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (SearchRequest): Query text, owner scope and search options.

    Returns:
        SearchResponse: Matches above the threshold, best first.
    """
    owner_id = resolve_owner_scope(request, body.owner_id)
    retrieval = request.app.state.retrieval_service
    request.app.state.logging.info("Asset search received, owner_id=%r query=%r", owner_id, body.query[:80])

    results = await retrieval.search_assets(
        body.query, owner_id, body.to_options(retrieval.default_limit, retrieval.default_threshold)
    )
    return SearchResponse(query=body.query, results=results, total=len(results))


@search_router.post("/chunks")
async def search_chunks(request: Request, body: SearchRequest) -> SearchResponse:
    """Search document chunks, optionally within one asset (asset_id)."""
    owner_id = resolve_owner_scope(request, body.owner_id)
    retrieval = request.app.state.retrieval_service
    request.app.state.logging.info("Chunk search received, owner_id=%r query=%r", owner_id, body.query[:80])

    results = await retrieval.search_document_chunks(
        body.query, owner_id, body.to_options(retrieval.default_limit, retrieval.default_threshold)
    )
    return SearchResponse(query=body.query, results=results, total=len(results))


@search_router.post("/hybrid")
async def search_hybrid(request: Request, body: HybridSearchRequest) -> HybridSearchResponse:
    """Search assets and chunks in one request."""
    owner_id = resolve_owner_scope(request, body.owner_id)
    retrieval = request.app.state.retrieval_service

    result = await retrieval.hybrid_search(
        body.query, owner_id, body.to_options(retrieval.default_limit, retrieval.default_threshold)
    )
    return HybridSearchResponse(query=body.query, assets=result.assets, chunks=result.chunks, total=result.total)


@search_router.get("/similar/{asset_id}")
async def search_similar(
    request: Request,
    asset_id: str,
    owner_id: str | None = None,
    limit: int = Query(default=10, ge=1, le=100),
) -> list[SearchHit]:
    """Find assets similar to an indexed asset."""
    owner_id = resolve_owner_scope(request, owner_id)
    return await request.app.state.retrieval_service.find_similar_assets(asset_id, owner_id, limit=limit)


@search_router.get("/assets/{asset_id}/chunks")
async def list_asset_chunks(
    request: Request,
    asset_id: str,
    owner_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=1000),
    start_index: int = Query(default=0, ge=0),
) -> list[dict]:
    """List the indexed chunks of an asset in chunk order."""
    owner_id = resolve_owner_scope(request, owner_id)
    return await request.app.state.retrieval_service.get_asset_chunks(
        asset_id, owner_id, limit=limit, start_index=start_index
    )
