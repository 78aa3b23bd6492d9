"""Builds the lowercase text blob that is embedded and stored with each vector record."""

from typing import Any, Iterable

from services.asset_index.chunking import Chunk
from shared.clients.store.models.Asset import Asset, AssetType

IMAGE_FIELDS = (
    "ai_description",
    "detected_objects",
    "dominant_colors",
    "extracted_text",
    "visual_themes",
    "mood",
    "style",
    "categories",
    "composition",
    "lighting",
    "setting",
)
DOCUMENT_FIELDS = ("title", "author", "subject")
DOCUMENT_TYPES = (AssetType.DOCUMENT, AssetType.SPREADSHEET)


def _flatten(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, (list, tuple, set)):
        return " ".join(str(v).strip() for v in value if v is not None and str(v).strip())
    if isinstance(value, AssetType):
        return value.value
    return str(value).strip()


def join_fields(values: Iterable[Any]) -> str:
    """Drop empty values, join the rest with single spaces and lowercase."""
    return " ".join(text for text in (_flatten(v) for v in values) if text).lower()


def build_asset_text(asset: Asset) -> str:
    meta = asset.metadata
    values: list[Any] = [
        asset.name,
        asset.original_name,
        asset.type,
        asset.mime_type,
        asset.tags,
        meta.description,
        meta.alt,
        meta.keywords,
    ]
    if asset.type == AssetType.IMAGE:
        values.extend(getattr(meta, field) for field in IMAGE_FIELDS)
    elif asset.type in DOCUMENT_TYPES:
        values.extend(getattr(meta, field) for field in DOCUMENT_FIELDS)
    return join_fields(values)


def build_chunk_text(chunk: Chunk, parent: Asset) -> str:
    meta = parent.metadata
    return join_fields([
        chunk.text,
        chunk.title,
        parent.tags,
        parent.name,
        parent.original_name,
        meta.title,
        meta.author,
        meta.subject,
        meta.keywords,
    ])
