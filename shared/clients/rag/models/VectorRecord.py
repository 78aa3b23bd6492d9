"""Vector record models: the unit stored in and returned from a RAG backend."""

from pydantic import BaseModel

CHUNK_RECORD_TYPE = "chunk"


def make_chunk_record_id(asset_id: str, chunk_index: int) -> str:
    return f"{asset_id}_chunk_{chunk_index}"


class VectorPayload(BaseModel):
    """Metadata payload stored alongside each vector in a RAG backend.

    Asset records and chunk records share this shape. Chunk records carry
    type == "chunk" and the chunk_* fields; asset records carry the asset
    type in both type and asset_type.

    Attributes:
        record_id:        Logical record id (asset id, or "{asset_id}_chunk_{n}").
        asset_id:         Id of the asset the record belongs to.
        owner_id:         Id of the owning user; used for access scoping.
        type:             Asset type for asset records, "chunk" for chunk records.
        asset_type:       Type of the parent asset.
        name:             Display name of the asset.
        original_name:    Original filename of the upload.
        mime_type:        MIME type of the asset.
        tags:             Tags attached to the asset.
        folder_id:        Folder of the asset, "root" when it has none.
        created:          ISO-8601 creation date of the asset, if known.
        searchable_text:  The exact text that was embedded.
        chunk_index:      Position of the chunk within the asset (chunks only).
        chunk_type:       Chunk type, e.g. "section" (chunks only).
        chunk_title:      Chunk title (chunks only).
        word_count:       Word count of the chunk text (chunks only).
    """

    record_id: str
    asset_id: str
    owner_id: str
    type: str
    asset_type: str | None = None
    name: str | None = None
    original_name: str | None = None
    mime_type: str | None = None
    tags: list[str] = []
    folder_id: str = "root"
    created: str | None = None
    searchable_text: str = ""

    chunk_index: int | None = None
    chunk_type: str | None = None
    chunk_title: str | None = None
    word_count: int | None = None


class VectorRecord(BaseModel):
    id: str
    vector: list[float]
    payload: VectorPayload


class QueryMatch(BaseModel):
    """A single ranked hit returned by a similarity query."""

    id: str
    score: float
    metadata: dict = {}


class IndexStats(BaseModel):
    total_vectors: int = 0
    dimension: int | None = None
