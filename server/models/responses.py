from pydantic import BaseModel


class WebhookResponse(BaseModel):
    status: str
    job_id: str
    job_type: str
    asset_id: str


class QueuedJobsResponse(BaseModel):
    status: str
    queued: int


class IndexStatsResponse(BaseModel):
    available: bool
    total_vectors: int | None = None
    dimension: int | None = None
