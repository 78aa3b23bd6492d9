"""Webhook router for entity store asset events.

The entity store calls POST /webhook/asset whenever an asset is created,
updated or deleted. The handler only enqueues an index job, so the
store's write path never waits for embedding or indexing.
"""

from fastapi import APIRouter, Depends, Request

from server.models.requests import EVENT_JOB_TYPES, AssetWebhookRequest
from server.models.responses import WebhookResponse
from shared.dependencies.auth import verify_api_key

webhook_router = APIRouter()


@webhook_router.post(
    "/webhook/asset",
    dependencies=[Depends(verify_api_key)],
    tags=["Webhook"],
    status_code=202,
)
async def handle_asset_webhook(request: Request, body: AssetWebhookRequest) -> WebhookResponse:
    """Handle an asset created/updated/deleted event.

    Args:
        request (Request): The incoming FastAPI request (carries app state).
        body (AssetWebhookRequest): Event type, asset id and optional priority.

    Returns:
        WebhookResponse: Acknowledgement with the queued job.
    """
    job_type = EVENT_JOB_TYPES[body.event]
    request.app.state.logging.info("Webhook received: %s asset_id=%r", body.event.value, body.asset_id)

    job = request.app.state.index_worker.enqueue(job_type, body.asset_id, body.priority)
    return WebhookResponse(status="accepted", job_id=job.id, job_type=job.type.value, asset_id=job.asset_id)
