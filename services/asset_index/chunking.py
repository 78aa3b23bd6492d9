"""Document chunking.

Splits the text of an asset into bounded, overlapping, typed chunks. Each
strategy is a pure function taking ``(document, options)`` and returning
chunks without indexes; ``chunk_document`` dispatches on the strategy,
applies the ``max_chunks`` bound and assigns contiguous indexes.

Invariants:
    * chunk indexes are contiguous and start at 0
    * at most ``options.max_chunks`` chunks are returned
    * every chunk text is at most ``options.chunk_size`` characters, except
      the leading summary chunk
"""

import math
import re
from enum import Enum
from typing import Callable

from pydantic import BaseModel, Field, model_validator

from shared.clients.store.models.Asset import Asset, AssetSection, AssetTable

SUMMARY_PREVIEW_CHARS = 500
SUMMARY_MAX_SECTION_TITLES = 10
SPREADSHEET_SAMPLE_VALUES = 5

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


class ChunkStrategy(str, Enum):
    FIXED = "fixed"
    SEMANTIC = "semantic"
    SECTION = "section"
    HYBRID = "hybrid"
    SPREADSHEET = "spreadsheet"


class ChunkType(str, Enum):
    SUMMARY = "summary"
    SECTION = "section"
    SECTION_PART = "section_part"
    CONTENT = "content"
    FIXED = "fixed"
    COLUMN = "column"
    ROWS = "rows"


class ChunkingOptions(BaseModel):
    strategy: ChunkStrategy = ChunkStrategy.HYBRID
    chunk_size: int = Field(default=1000, gt=0)
    overlap: int = Field(default=200, ge=0)
    preserve_sections: bool = True
    max_chunks: int = Field(default=100, gt=0)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingOptions":
        if self.overlap >= self.chunk_size:
            raise ValueError(f"overlap ({self.overlap}) must be smaller than chunk_size ({self.chunk_size})")
        return self


class ChunkDocument(BaseModel):
    """The input of the chunker: extracted text plus optional structure."""

    asset_id: str | None = None
    name: str | None = None
    text: str = ""
    sections: list[AssetSection] = []
    title: str | None = None
    author: str | None = None
    subject: str | None = None
    table: AssetTable | None = None

    @classmethod
    def from_asset(cls, asset: Asset) -> "ChunkDocument":
        return cls(
            asset_id=asset.id,
            name=asset.original_name or asset.name,
            text=asset.text or "",
            sections=asset.sections,
            title=asset.metadata.title or asset.name,
            author=asset.metadata.author,
            subject=asset.metadata.subject,
            table=asset.table,
        )


class Chunk(BaseModel):
    """
    An ordered fragment of a document.

    Attributes:
        index:      Position within the document, assigned by chunk_document.
        type:       Chunk type tag.
        title:      Human-readable label (section title, "Content Part 2", ...).
        text:       The chunk text.
        page:       Source page hint.
        start_char: Character offset of the window in the raw text (fixed strategy).
        level:      Nesting level; 0 for the summary.
        word_count: Number of whitespace-separated words in text.
    """

    index: int = 0
    type: ChunkType
    title: str = ""
    text: str
    page: int | None = None
    start_char: int | None = None
    level: int = 1
    word_count: int = 0


##########################################
################ HELPERS #################
##########################################

def count_words(text: str) -> int:
    return len(text.split())


def _make_chunk(chunk_type: ChunkType, title: str, text: str, **kwargs) -> Chunk:
    return Chunk(type=chunk_type, title=title, text=text, word_count=count_words(text), **kwargs)


def split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(text or "") if p.strip()]


def _window_end(text: str, start: int, size: int) -> int:
    """End of a window of at most size characters starting at start.

    Moves back to just after the last "." in the last 30% of the window,
    else to the last space in the last 20%.
    """
    end = min(start + size, len(text))
    if end >= len(text):
        return end
    last_period = text.rfind(".", start, end)
    last_space = text.rfind(" ", start, end)
    if last_period > start + size * 0.7:
        return last_period + 1
    if last_space > start + size * 0.8:
        return last_space
    return end


def _split_windows(text: str, size: int) -> list[str]:
    """Cut text into consecutive windows of at most size characters, no overlap."""
    size = max(1, size)
    pieces: list[str] = []
    start = 0
    while start < len(text):
        end = _window_end(text, start, size)
        piece = text[start:end].strip()
        if piece:
            pieces.append(piece)
        start = max(end, start + 1)
    return pieces


def overlap_tail(text: str, overlap: int) -> str:
    """The bridge text carried from the end of one chunk into the next.

    Takes the last ``overlap`` characters; if a ". " lies in the first half
    of that tail, the tail starts right after it. The result is always a
    suffix of ``text``.
    """
    if overlap <= 0 or not text:
        return ""
    tail = text[-overlap:]
    cut = tail.find(". ")
    if 0 <= cut < overlap * 0.5:
        tail = tail[cut + 2:]
    return tail.lstrip()


def _accumulate(paragraphs: list[str], budget: int, overlap: int) -> list[str]:
    """Pack paragraphs into bodies of at most budget characters.

    A new body starts with the overlap tail of the previous one. Paragraphs
    too large to follow a tail are cut into windows first.
    """
    overlap = min(overlap, budget // 2)
    piece_limit = max(1, budget - overlap - 2)
    if piece_limit + overlap + 2 > budget:
        overlap = 0
    pieces: list[str] = []
    for paragraph in paragraphs:
        if len(paragraph) > piece_limit:
            pieces.extend(_split_windows(paragraph, piece_limit))
        else:
            pieces.append(paragraph)

    bodies: list[str] = []
    buffer = ""
    for piece in pieces:
        if not buffer:
            buffer = piece
            continue
        candidate = f"{buffer}\n\n{piece}"
        if len(candidate) <= budget:
            buffer = candidate
            continue
        bodies.append(buffer)
        tail = overlap_tail(buffer, overlap)
        buffer = f"{tail}\n\n{piece}" if tail else piece
    if buffer.strip():
        bodies.append(buffer)
    return bodies


##########################################
############### SUMMARY ##################
##########################################

def body_text(document: ChunkDocument) -> str:
    """The extracted text, or the joined section contents when there is none."""
    if document.text and document.text.strip():
        return document.text
    return "\n\n".join(s.content for s in document.sections if s.content)


def summary_chunk(document: ChunkDocument) -> Chunk | None:
    parts: list[str] = []
    if document.title:
        parts.append(f"Title: {document.title}")
    if document.author:
        parts.append(f"Author: {document.author}")
    if document.subject:
        parts.append(f"Subject: {document.subject}")

    section_titles = [s.title for s in document.sections if s.title][:SUMMARY_MAX_SECTION_TITLES]
    if section_titles:
        parts.append(f"Sections: {', '.join(section_titles)}")

    preview = body_text(document)[:SUMMARY_PREVIEW_CHARS].strip()
    if preview:
        parts.append(preview)

    if not parts:
        return None
    return _make_chunk(ChunkType.SUMMARY, "Document Summary", "\n\n".join(parts), page=1, level=0)


##########################################
############## STRATEGIES ################
##########################################

def _content_chunks(document: ChunkDocument, options: ChunkingOptions) -> list[Chunk]:
    bodies = _accumulate(split_paragraphs(body_text(document)), options.chunk_size, options.overlap)
    return [
        _make_chunk(
            ChunkType.CONTENT,
            f"Content Part {n}",
            body,
            page=max(1, math.ceil(n * options.chunk_size / 1000)),
            level=2,
        )
        for n, body in enumerate(bodies, start=1)
    ]


def chunk_section(section: AssetSection, options: ChunkingOptions) -> list[Chunk]:
    """One chunk per section, or "(Part k)" chunks when the section is too large."""
    title = section.title.strip()
    content = section.content.strip()
    if not title and not content:
        return []
    page = section.page or 1

    whole = f"{title}\n\n{content}" if title and content else (title or content)
    if len(whole) <= options.chunk_size:
        return [_make_chunk(ChunkType.SECTION, title, whole, page=page, level=section.level)]

    # a long title is kept as chunk title only
    header = f"{title}\n\n" if title and len(title) + 2 <= options.chunk_size // 4 else ""
    bodies = _accumulate(split_paragraphs(content), options.chunk_size - len(header), options.overlap)
    if len(bodies) == 1:
        return [_make_chunk(ChunkType.SECTION, title, header + bodies[0], page=page, level=section.level)]
    return [
        _make_chunk(ChunkType.SECTION_PART, f"{title} (Part {k})", header + body, page=page, level=section.level)
        for k, body in enumerate(bodies, start=1)
    ]


def fixed_chunks(document: ChunkDocument, options: ChunkingOptions) -> list[Chunk]:
    text = body_text(document)
    chunks: list[Chunk] = []
    start = 0
    windows = 0
    while start < len(text) and windows < options.max_chunks:
        end = _window_end(text, start, options.chunk_size)
        piece = text[start:end].strip()
        windows += 1
        if piece:
            chunks.append(_make_chunk(
                ChunkType.FIXED,
                f"Fixed Chunk {windows}",
                piece,
                page=start // 1000 + 1,
                start_char=start,
                level=2,
            ))
        if end >= len(text):
            break
        start = max(end - options.overlap, start + 1)
    return chunks


def semantic_chunks(document: ChunkDocument, options: ChunkingOptions) -> list[Chunk]:
    summary = summary_chunk(document)
    return ([summary] if summary else []) + _content_chunks(document, options)


def section_chunks(document: ChunkDocument, options: ChunkingOptions) -> list[Chunk]:
    if not document.sections:
        return semantic_chunks(document, options)
    chunks: list[Chunk] = []
    for section in document.sections:
        chunks.extend(chunk_section(section, options))
    return chunks


def hybrid_chunks(document: ChunkDocument, options: ChunkingOptions) -> list[Chunk]:
    summary = summary_chunk(document)
    chunks = [summary] if summary else []
    if document.sections and options.preserve_sections:
        for section in document.sections:
            chunks.extend(chunk_section(section, options))
    else:
        chunks.extend(_content_chunks(document, options))
    return chunks


def spreadsheet_chunks(document: ChunkDocument, options: ChunkingOptions) -> list[Chunk]:
    """Summary, one chunk per column, then rows packed into "rows" chunks."""
    table = document.table
    if table is None or not table.headers:
        return semantic_chunks(document, options)

    headers = table.headers
    rows = table.rows
    size = options.chunk_size
    chunks: list[Chunk] = []

    summary_lines = []
    if document.name:
        summary_lines.append(f"Spreadsheet: {document.name}")
    if document.title and document.title != document.name:
        summary_lines.append(f"Title: {document.title}")
    summary_lines.append(f"Rows: {len(rows)}")
    summary_lines.append(f"Columns: {len(headers)}")
    summary_lines.append(f"Headers: {', '.join(headers)}")
    chunks.append(_make_chunk(ChunkType.SUMMARY, "Spreadsheet Summary", "\n".join(summary_lines), page=1, level=0))

    for column_index, header in enumerate(headers):
        values = [row[column_index] for row in rows if column_index < len(row)]
        filled = [str(v) for v in values if v is not None and str(v).strip() != ""]
        fill_rate = round(100 * len(filled) / len(rows), 1) if rows else 0.0
        samples = list(dict.fromkeys(filled))[:SPREADSHEET_SAMPLE_VALUES]
        column_text = "\n".join([
            f"Column: {header}",
            f"Fill Rate: {fill_rate}%",
            f"Unique Values: {len(set(filled))}",
            f"Sample Values: {', '.join(samples)}",
            f"Missing Values: {len(rows) - len(filled)} out of {len(rows)} rows",
        ])[:size]
        chunks.append(_make_chunk(ChunkType.COLUMN, f"Column: {header}", column_text, level=1))

    buffer: list[str] = []
    first_row = 0
    for row_index, row in enumerate(rows):
        row_text = " | ".join(
            f"{header}: {row[i] if i < len(row) and row[i] not in (None, '') else 'N/A'}"
            for i, header in enumerate(headers)
        )[:size]
        if buffer and len("\n".join(buffer + [row_text])) > size:
            chunks.append(_make_chunk(ChunkType.ROWS, f"Rows {first_row + 1}-{row_index}", "\n".join(buffer), level=2))
            buffer = []
            first_row = row_index
        buffer.append(row_text)
    if buffer:
        chunks.append(_make_chunk(ChunkType.ROWS, f"Rows {first_row + 1}-{len(rows)}", "\n".join(buffer), level=2))
    return chunks


STRATEGIES: dict[ChunkStrategy, Callable[[ChunkDocument, ChunkingOptions], list[Chunk]]] = {
    ChunkStrategy.FIXED: fixed_chunks,
    ChunkStrategy.SEMANTIC: semantic_chunks,
    ChunkStrategy.SECTION: section_chunks,
    ChunkStrategy.HYBRID: hybrid_chunks,
    ChunkStrategy.SPREADSHEET: spreadsheet_chunks,
}


##########################################
################ ENTRY ###################
##########################################

def chunk_document(document: ChunkDocument, options: ChunkingOptions | None = None) -> list[Chunk]:
    """Split a document into ordered chunks.

    Args:
        document (ChunkDocument): Text plus optional sections, metadata and table.
        options (ChunkingOptions | None): Strategy and size limits. Defaults apply when None.

    Returns:
        list[Chunk]: Chunks with contiguous indexes from 0, at most options.max_chunks.
    """
    options = options or ChunkingOptions()
    has_text = bool(document.text and document.text.strip())
    has_table = bool(document.table and document.table.headers)
    if not has_text and not document.sections and not has_table:
        return []

    chunks = STRATEGIES[options.strategy](document, options)[: options.max_chunks]
    return [chunk.model_copy(update={"index": index}) for index, chunk in enumerate(chunks)]


def chunk_asset(asset: Asset, options: ChunkingOptions | None = None) -> list[Chunk]:
    """Chunk an asset, using the spreadsheet strategy for tabular assets."""
    options = options or ChunkingOptions()
    document = ChunkDocument.from_asset(asset)
    if document.table is not None and document.table.headers and options.strategy != ChunkStrategy.SPREADSHEET:
        options = options.model_copy(update={"strategy": ChunkStrategy.SPREADSHEET})
    return chunk_document(document, options)
