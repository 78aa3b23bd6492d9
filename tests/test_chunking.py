"""
Unit tests for the chunking strategies.
"""
import pytest

from services.asset_index.chunking import (
    ChunkDocument,
    ChunkingOptions,
    ChunkStrategy,
    ChunkType,
    chunk_asset,
    chunk_document,
    overlap_tail,
)
from shared.clients.store.models.Asset import AssetSection, AssetTable, AssetType


def _paragraph(i: int) -> str:
    return f"Paragraph {i} " + "lorem ipsum dolor sit amet. " * 6


def _long_text(paragraphs: int = 30) -> str:
    return "\n\n".join(_paragraph(i).strip() for i in range(paragraphs))


def _shared_overlap(previous: str, current: str) -> str:
    """Longest prefix of current that is also a suffix of previous."""
    for size in range(min(len(previous), len(current)), 0, -1):
        if previous.endswith(current[:size]):
            return current[:size]
    return ""


def _sections_only() -> ChunkDocument:
    return ChunkDocument(
        title="Briefing",
        sections=[
            AssetSection(title="Alpha", content="Alpha facts. " * 92),
            AssetSection(title="Beta", content="Beta facts. " * 100),
        ],
    )


class TestChunkDocument:
    def test_empty_document_has_no_chunks(self):
        assert chunk_document(ChunkDocument(text="   ")) == []

    def test_max_chunks_bounds_the_result(self):
        options = ChunkingOptions(strategy=ChunkStrategy.SEMANTIC, chunk_size=200, overlap=20, max_chunks=3)
        chunks = chunk_document(ChunkDocument(title="Long", text=_long_text()), options)

        assert len(chunks) == 3
        assert [c.index for c in chunks] == [0, 1, 2]

    def test_indexes_are_contiguous_from_zero(self):
        options = ChunkingOptions(chunk_size=300, overlap=50)
        chunks = chunk_document(ChunkDocument(title="Long", text=_long_text()), options)

        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_hybrid_starts_with_summary(self):
        document = ChunkDocument(
            title="Handbook",
            author="HR",
            text="Welcome aboard.",
            sections=[AssetSection(title="Welcome", content="Welcome aboard.")],
        )
        chunks = chunk_document(document, ChunkingOptions(strategy=ChunkStrategy.HYBRID))

        assert chunks[0].type == ChunkType.SUMMARY
        assert chunks[0].level == 0
        assert "Title: Handbook" in chunks[0].text
        assert "Sections: Welcome" in chunks[0].text
        assert chunks[1].type == ChunkType.SECTION

    def test_short_text_semantic_gives_summary_and_one_content_chunk(self):
        chunks = chunk_document(
            ChunkDocument(text="Hello world. This is short."),
            ChunkingOptions(strategy=ChunkStrategy.SEMANTIC),
        )

        assert [c.type for c in chunks] == [ChunkType.SUMMARY, ChunkType.CONTENT]
        assert chunks[1].text == "Hello world. This is short."
        assert chunks[1].title == "Content Part 1"
        assert chunks[1].word_count == 5

    def test_section_strategy_without_sections_falls_back_to_semantic(self):
        chunks = chunk_document(
            ChunkDocument(text="Plain text only."),
            ChunkingOptions(strategy=ChunkStrategy.SECTION),
        )

        assert chunks[0].type == ChunkType.SUMMARY
        assert chunks[-1].type == ChunkType.CONTENT

    def test_every_chunk_respects_chunk_size(self):
        document = ChunkDocument(
            title="Manual",
            text=_long_text(),
            sections=[
                AssetSection(title="Setup", content=_long_text(8)),
                AssetSection(title="Usage", content=_long_text(12)),
            ],
        )
        options = ChunkingOptions(chunk_size=500, overlap=80, max_chunks=100)

        for strategy in ChunkStrategy:
            chunks = chunk_document(document, options.model_copy(update={"strategy": strategy}))
            assert chunks
            for chunk in chunks:
                if chunk.type != ChunkType.SUMMARY:
                    assert len(chunk.text) <= options.chunk_size


class TestSemanticChunks:
    def test_multi_paragraph_chunks_start_with_tail_of_previous(self):
        paragraphs = [_paragraph(i).strip() for i in range(30)]
        options = ChunkingOptions(strategy=ChunkStrategy.SEMANTIC, chunk_size=800, overlap=100)
        chunks = chunk_document(ChunkDocument(title="Notes", text="\n\n".join(paragraphs)), options)

        assert chunks[0].type == ChunkType.SUMMARY
        content = chunks[1:]
        assert len(content) > 2
        assert all(c.type == ChunkType.CONTENT for c in content)
        assert all(len(c.text) <= 800 for c in content)
        for previous, current in zip(content, content[1:]):
            assert len(_shared_overlap(previous.text, current.text)) >= 25
        for paragraph in paragraphs:
            assert any(paragraph in c.text for c in content)

    def test_oversized_paragraph_chunks_start_with_tail_of_previous(self):
        text = " ".join(f"Sentence {i} has a few words in it." for i in range(100))
        options = ChunkingOptions(strategy=ChunkStrategy.SEMANTIC, chunk_size=800, overlap=100)
        chunks = chunk_document(ChunkDocument(text=text), options)

        content = [c for c in chunks if c.type == ChunkType.CONTENT]
        assert len(content) > 2
        assert all(len(c.text) <= 800 for c in content)
        for previous, current in zip(content, content[1:]):
            assert len(_shared_overlap(previous.text, current.text)) >= 25
        assert content[0].text.startswith("Sentence 0 ")
        assert content[-1].text.endswith("Sentence 99 has a few words in it.")


class TestSectionsWithoutText:
    @pytest.mark.parametrize("strategy, preserve_sections", [
        (ChunkStrategy.SEMANTIC, True),
        (ChunkStrategy.HYBRID, False),
    ])
    def test_section_contents_are_chunked_as_text(self, strategy, preserve_sections):
        options = ChunkingOptions(strategy=strategy, preserve_sections=preserve_sections)
        chunks = chunk_document(_sections_only(), options)

        assert chunks[0].type == ChunkType.SUMMARY
        content = chunks[1:]
        assert len(content) > 1
        assert all(c.type == ChunkType.CONTENT for c in content)
        assert all(len(c.text) <= options.chunk_size for c in content)
        assert any("Alpha facts." in c.text for c in content)
        assert content[-1].text.endswith("Beta facts.")

    def test_fixed_windows_cover_section_contents(self):
        options = ChunkingOptions(strategy=ChunkStrategy.FIXED)
        chunks = chunk_document(_sections_only(), options)

        assert len(chunks) > 1
        assert chunks[0].text.startswith("Alpha facts.")
        assert chunks[-1].text.endswith("Beta facts.")


class TestHybridSections:
    def test_intro_and_large_body(self):
        paragraphs = [_paragraph(i).strip() for i in range(10)]
        document = ChunkDocument(
            title="Guide",
            sections=[
                AssetSection(title="Intro", content="A short opening."),
                AssetSection(title="Body", content="\n\n".join(paragraphs)),
            ],
        )
        options = ChunkingOptions(strategy=ChunkStrategy.HYBRID, chunk_size=800, overlap=100)
        chunks = chunk_document(document, options)

        assert chunks[0].type == ChunkType.SUMMARY
        assert "Sections: Intro, Body" in chunks[0].text
        assert chunks[1].type == ChunkType.SECTION
        assert chunks[1].text == "Intro\n\nA short opening."

        parts = chunks[2:]
        assert len(parts) >= 2
        assert all(part.type == ChunkType.SECTION_PART for part in parts)
        assert all(len(part.text) <= 800 for part in parts)

        bodies = [part.text[len("Body\n\n"):] for part in parts]
        for previous, current in zip(bodies, bodies[1:]):
            assert _shared_overlap(previous, current)
        for paragraph in paragraphs:
            assert any(paragraph in body for body in bodies)


class TestSectionChunks:
    def test_single_small_section_is_one_chunk(self):
        document = ChunkDocument(sections=[AssetSection(title="Intro", content="Short intro.", page=3)])
        chunks = chunk_document(document, ChunkingOptions(strategy=ChunkStrategy.SECTION))

        assert len(chunks) == 1
        assert chunks[0].type == ChunkType.SECTION
        assert chunks[0].title == "Intro"
        assert chunks[0].text == "Intro\n\nShort intro."
        assert chunks[0].page == 3

    def test_large_section_is_split_into_overlapping_parts(self):
        paragraphs = [_paragraph(i).strip() for i in range(10)]
        document = ChunkDocument(sections=[
            AssetSection(title="Intro", content="A short opening."),
            AssetSection(title="Body", content="\n\n".join(paragraphs)),
        ])
        options = ChunkingOptions(strategy=ChunkStrategy.SECTION, chunk_size=800, overlap=100)
        chunks = chunk_document(document, options)

        assert chunks[0].type == ChunkType.SECTION
        assert chunks[0].title == "Intro"

        parts = chunks[1:]
        assert len(parts) > 1
        assert all(part.type == ChunkType.SECTION_PART for part in parts)
        assert [part.title for part in parts] == [f"Body (Part {k})" for k in range(1, len(parts) + 1)]
        assert all(len(part.text) <= 800 for part in parts)
        assert all(part.text.startswith("Body\n\n") for part in parts)

        bodies = [part.text[len("Body\n\n"):] for part in parts]
        for previous, current in zip(bodies, bodies[1:]):
            tail = current.split("\n\n")[0]
            assert tail
            assert previous.endswith(tail)

        # every paragraph survives in at least one part
        for paragraph in paragraphs:
            assert any(paragraph in body for body in bodies)


class TestFixedChunks:
    def test_windows_overlap_without_break_points(self):
        text = "abcdefghij" * 250
        options = ChunkingOptions(strategy=ChunkStrategy.FIXED, chunk_size=1000, overlap=200)
        chunks = chunk_document(ChunkDocument(text=text), options)

        assert [c.start_char for c in chunks] == [0, 800, 1600]
        assert [len(c.text) for c in chunks] == [1000, 1000, 900]
        assert chunks[1].text[:200] == chunks[0].text[-200:]
        assert all(c.type == ChunkType.FIXED for c in chunks)

    def test_window_ends_after_a_late_period(self):
        text = "x" * 85 + ". " + "y" * 100
        options = ChunkingOptions(strategy=ChunkStrategy.FIXED, chunk_size=100, overlap=10)
        chunks = chunk_document(ChunkDocument(text=text), options)

        assert chunks[0].text == "x" * 85 + "."


class TestOverlapTail:
    def test_tail_starts_after_early_sentence_break(self):
        assert overlap_tail("Alpha beta. Gamma delta epsilon", 24) == "Gamma delta epsilon"

    def test_tail_is_suffix_of_text(self):
        text = "one two three four five six seven"
        assert text.endswith(overlap_tail(text, 10))

    def test_zero_overlap_gives_empty_tail(self):
        assert overlap_tail("anything", 0) == ""


class TestChunkingOptions:
    def test_overlap_must_be_smaller_than_chunk_size(self):
        with pytest.raises(ValueError):
            ChunkingOptions(chunk_size=100, overlap=100)


class TestSpreadsheetChunks:
    def test_tabular_asset_uses_spreadsheet_strategy(self, asset_factory):
        asset = asset_factory(
            name="stock.xlsx",
            type=AssetType.SPREADSHEET,
            table=AssetTable(headers=["name", "qty"], rows=[["apple", 3], ["pear", None]]),
        )
        chunks = chunk_asset(asset, ChunkingOptions(strategy=ChunkStrategy.HYBRID))

        assert [c.type for c in chunks] == [ChunkType.SUMMARY, ChunkType.COLUMN, ChunkType.COLUMN, ChunkType.ROWS]
        assert "Rows: 2" in chunks[0].text
        assert "Headers: name, qty" in chunks[0].text

        qty_column = chunks[2]
        assert qty_column.title == "Column: qty"
        assert "Fill Rate: 50.0%" in qty_column.text
        assert "Missing Values: 1 out of 2 rows" in qty_column.text

        assert chunks[3].title == "Rows 1-2"
        assert chunks[3].text == "name: apple | qty: 3\nname: pear | qty: N/A"

    def test_rows_are_packed_into_bounded_chunks(self):
        table = AssetTable(headers=["id", "label"], rows=[[i, f"item number {i}"] for i in range(40)])
        options = ChunkingOptions(strategy=ChunkStrategy.SPREADSHEET, chunk_size=200, overlap=0)
        chunks = chunk_document(ChunkDocument(name="items.csv", table=table), options)

        row_chunks = [c for c in chunks if c.type == ChunkType.ROWS]
        assert len(row_chunks) > 1
        assert all(len(c.text) <= 200 for c in row_chunks)
        assert sum(len(c.text.split("\n")) for c in row_chunks) == 40
