"""Generic asset model, independent of the entity store backend."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AssetType(str, Enum):
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    FONT = "font"
    OTHER = "other"


class AssetSection(BaseModel):
    """
    A pre-parsed section of a document, as delivered by the entity store.
    """
    title: str = ""
    content: str = ""
    page: int | None = None
    level: int = 1


class AssetTable(BaseModel):
    """
    Tabular content of a spreadsheet asset. Rows are aligned with headers.
    """
    headers: list[str] = []
    rows: list[list[Any]] = []


class AssetMetadata(BaseModel):
    """
    Structured metadata of an asset. Image fields are filled by image analysis,
    document fields by the document parser.
    """
    description: str | None = None
    alt: str | None = None
    keywords: list[str] = []

    # documents
    title: str | None = None
    author: str | None = None
    subject: str | None = None

    # images
    ai_description: str | None = None
    detected_objects: list[str] = []
    dominant_colors: list[str] = []
    extracted_text: str | None = None
    visual_themes: list[str] = []
    mood: str | None = None
    style: str | None = None
    categories: list[str] = []
    composition: str | None = None
    lighting: str | None = None
    setting: str | None = None


class Asset(BaseModel):
    """
    Represents a single owned asset with all its metadata, as returned by a store client.
    """
    engine: str
    id: str
    owner_id: str
    name: str | None = None
    original_name: str | None = None
    type: AssetType = AssetType.OTHER
    mime_type: str | None = None
    tags: list[str] = []
    folder_id: str | None = None
    text: str | None = None
    sections: list[AssetSection] = []
    table: AssetTable | None = None
    metadata: AssetMetadata = Field(default_factory=AssetMetadata)
    indexed: bool = False
    last_indexed_at: datetime | None = None
    created_at: datetime | None = None

    def has_chunkable_content(self) -> bool:
        return bool((self.text and self.text.strip()) or self.sections or (self.table and self.table.rows))


class AssetsListResponse(BaseModel):
    """
    Represents the response from an entity store when fetching a list of assets.
    """
    engine: str
    assets: list[Asset] = []
    currentPage: int
    nextPage: int | None = None
    overallCount: int | None = None
    lastPage: int | None = None
