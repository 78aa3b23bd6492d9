from enum import Enum

from pydantic import BaseModel

from services.asset_index.IndexJobQueue import JobPriority, JobType


class AssetEvent(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


EVENT_JOB_TYPES = {
    AssetEvent.CREATED: JobType.ADD,
    AssetEvent.UPDATED: JobType.UPDATE,
    AssetEvent.DELETED: JobType.REMOVE,
}


class AssetWebhookRequest(BaseModel):
    event: AssetEvent
    asset_id: str
    priority: JobPriority = JobPriority.NORMAL
