"""Unit tests for the document extractor and page heuristics."""

from __future__ import annotations

import io

import pytest

from doc_ingest.errors import ExtractionFailed, UnsupportedFormatError
from doc_ingest.extraction.extractor import ensure_supported, extract_document, paginate_words
from doc_ingest.extraction.formatting import (
    UNTITLED,
    detect_equations,
    detect_tables,
    extract_title,
    text_to_html,
)


def _words(n: int) -> str:
    return " ".join(f"w{i}" for i in range(n))


# ── TXT ─────────────────────────────────────────────────────────────────


class TestTxt:
    def test_paginates_by_word_count(self) -> None:
        result = extract_document(_words(1200).encode(), "notes.txt", words_per_page=500)
        assert result.total_pages == 3
        assert [p.word_count for p in result.pages] == [500, 500, 200]
        assert [p.page_number for p in result.pages] == [1, 2, 3]

    def test_title_from_first_line(self) -> None:
        data = b"Thermodynamics Primer\n\nHeat flows from hot to cold."
        result = extract_document(data, "primer.txt")
        assert result.metadata["title"] == "Thermodynamics Primer"

    def test_invalid_utf8_is_replaced(self) -> None:
        result = extract_document(b"caf\xe9 au lait", "menu.txt")
        assert "�" in result.pages[0].text

    def test_empty_file_fails(self) -> None:
        with pytest.raises(ExtractionFailed):
            extract_document(b"   \n  ", "empty.txt")

    def test_doc_read_as_text(self) -> None:
        result = extract_document(b"legacy word file text", "old.doc")
        assert result.pages[0].text == "legacy word file text"

    def test_html_is_escaped(self) -> None:
        pages = paginate_words("<script> & more", words_per_page=10)
        assert "&lt;script&gt;" in pages[0].html


# ── DOCX ────────────────────────────────────────────────────────────────


def _docx_bytes(paragraphs: list[str], *, table: bool = False, title: str = "") -> bytes:
    import docx

    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table:
        grid = document.add_table(rows=2, cols=2)
        grid.cell(0, 0).text = "Mass"
        grid.cell(0, 1).text = "Velocity"
        grid.cell(1, 0).text = "2 kg"
        grid.cell(1, 1).text = "3 m/s"
    if title:
        document.core_properties.title = title
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class TestDocx:
    def test_paragraphs_and_tables(self) -> None:
        data = _docx_bytes(["Momentum", "p equals m times v"], table=True, title="Lab Manual")
        result = extract_document(data, "lab.docx")
        assert result.total_pages == 1
        page = result.pages[0]
        assert "Momentum" in page.text
        assert "Mass Velocity" in page.text
        assert page.has_tables is True
        assert page.html.startswith('<div class="prose">')
        assert result.metadata["title"] == "Lab Manual"

    def test_long_document_is_paginated(self) -> None:
        data = _docx_bytes([_words(300), _words(300)])
        result = extract_document(data, "long.docx", words_per_page=250)
        assert result.total_pages == 3

    def test_corrupt_docx(self) -> None:
        with pytest.raises(ExtractionFailed):
            extract_document(b"definitely not a zip", "broken.docx")


# ── PDF ─────────────────────────────────────────────────────────────────


class TestPdf:
    def test_blank_pages_and_metadata(self) -> None:
        from pypdf import PdfWriter

        writer = PdfWriter()
        writer.add_blank_page(width=612, height=792)
        writer.add_blank_page(width=612, height=792)
        writer.add_metadata({"/Title": "Blank Book"})
        buffer = io.BytesIO()
        writer.write(buffer)

        result = extract_document(buffer.getvalue(), "blank.pdf")
        assert result.total_pages == 2
        assert [p.page_number for p in result.pages] == [1, 2]
        assert result.metadata["title"] == "Blank Book"

    def test_corrupt_pdf(self) -> None:
        with pytest.raises(ExtractionFailed):
            extract_document(b"%PDF-1.4 garbage", "broken.pdf")


# ── Formats and heuristics ──────────────────────────────────────────────


class TestFormats:
    @pytest.mark.parametrize("name", ["a.pdf", "B.DOCX", "c.doc", "d.txt"])
    def test_supported(self, name: str) -> None:
        assert ensure_supported(name) == name.rsplit(".", 1)[1].lower()

    @pytest.mark.parametrize("name", ["image.png", "archive.zip", "README"])
    def test_unsupported(self, name: str) -> None:
        with pytest.raises(UnsupportedFormatError):
            extract_document(b"data", name)


class TestHeuristics:
    def test_equations(self) -> None:
        assert detect_equations("E = mc^2")
        assert detect_equations("∫ f(x) dx")
        assert detect_equations("sin(x) is periodic")
        assert not detect_equations("The quick brown fox jumps over the lazy dog")

    def test_tables_need_more_than_three_rows(self) -> None:
        rows = ["Name\tAge", "Ann\t31", "Bob\t42"]
        assert not detect_tables("\n".join(rows))
        assert detect_tables("\n".join(rows + ["Cy\t27"]))

    def test_title(self) -> None:
        assert extract_title("\n\n  A Short Title \nbody") == "A Short Title"
        assert extract_title("x" * 150) == UNTITLED
        assert extract_title("") == UNTITLED

    def test_text_to_html(self) -> None:
        html = text_to_html("INTRODUCTION\n1. first\n2. second\nPlain paragraph x^2")
        assert "<h2>INTRODUCTION</h2>" in html
        assert "<ul>" in html and "<li>first</li>" in html
        assert "<p>Plain paragraph x<sup>2</sup></p>" in html
