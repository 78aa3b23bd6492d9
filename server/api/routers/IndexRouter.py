"""Index administration router: queue status, index stats, recovery and re-index."""

from fastapi import APIRouter, Depends, Request

from server.models.responses import IndexStatsResponse, QueuedJobsResponse
from shared.dependencies.auth import verify_api_key

index_router = APIRouter(prefix="/index", tags=["Index"], dependencies=[Depends(verify_api_key)])


@index_router.get("/status")
async def get_status(request: Request) -> dict:
    """Return the job worker status: running flag, pending jobs and counters."""
    return request.app.state.index_worker.get_status()


@index_router.get("/stats")
async def get_stats(request: Request) -> IndexStatsResponse:
    """Return vector count and dimension, or available=false without an index."""
    stats = await request.app.state.retrieval_service.get_stats()
    return IndexStatsResponse(**stats)


@index_router.post("/recover", status_code=202)
async def recover(request: Request) -> QueuedJobsResponse:
    """Queue an add job for every asset that is not indexed yet."""
    queued = await request.app.state.index_worker.process_all_unindexed()
    return QueuedJobsResponse(status="accepted", queued=queued)


@index_router.post("/reindex", status_code=202)
async def reindex(request: Request) -> QueuedJobsResponse:
    """Queue an update job for every asset, e.g. after a chunking change."""
    queued = await request.app.state.index_worker.reindex_all()
    return QueuedJobsResponse(status="accepted", queued=queued)
