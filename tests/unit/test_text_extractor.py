"""
Tests for text extraction across formats.

**Feature: docscope-text-extraction**
"""

from pathlib import Path

from docscope.core.text_extractor import extract_text, odt_xml_to_text
from tests.support.documents import write_docx, write_odt, write_pdf


class TestPlainText:
    def test_reads_utf8(self, tmp_path: Path):
        path = tmp_path / "notes.txt"
        path.write_text("hello wörld", encoding="utf-8")

        assert extract_text(path, ".txt") == "hello wörld"

    def test_unknown_extension_is_read_as_text(self, tmp_path: Path):
        path = tmp_path / "config.weird"
        path.write_text("key = value", encoding="utf-8")

        assert extract_text(path, ".weird") == "key = value"

    def test_undecodable_bytes_yield_empty(self, tmp_path: Path):
        path = tmp_path / "binary.txt"
        path.write_bytes(b"\xff\xfe\x00\x81\x82")

        assert extract_text(path, ".txt") == ""


class TestDocuments:
    def test_pdf_text_layer(self, tmp_path: Path):
        path = write_pdf(tmp_path / "plan.pdf", "secret plan")

        assert "secret plan" in extract_text(path, ".pdf")

    def test_extension_is_case_insensitive(self, tmp_path: Path):
        path = write_pdf(tmp_path / "PLAN.PDF", "secret plan")

        assert "secret plan" in extract_text(path, ".PDF")

    def test_docx_paragraphs(self, tmp_path: Path):
        path = write_docx(tmp_path / "letter.docx", ["First paragraph", "Second paragraph"])

        text = extract_text(path, ".docx")

        assert "First paragraph" in text
        assert "Second paragraph" in text
        assert text.index("First") < text.index("Second")

    def test_odt_headings_and_paragraphs(self, tmp_path: Path):
        xml = (
            '<office:text><text:h text:style-name="H" text:outline-level="1">Title</text:h>'
            '<text:p text:style-name="P">Body<text:tab/>text</text:p></office:text>'
        )
        path = write_odt(tmp_path / "doc.odt", xml)

        assert extract_text(path, ".odt") == "# Title\n\nBody    text"

    def test_odt_without_content_xml(self, tmp_path: Path):
        path = write_odt(tmp_path / "empty.odt", None)

        assert extract_text(path, ".odt") == ""


class TestRobustness:
    def test_missing_file(self, tmp_path: Path):
        assert extract_text(tmp_path / "gone.txt", ".txt") == ""

    def test_corrupted_pdf(self, tmp_path: Path):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"this is not a pdf at all")

        assert extract_text(path, ".pdf") == ""

    def test_corrupted_docx(self, tmp_path: Path):
        path = tmp_path / "broken.docx"
        path.write_bytes(b"PK\x03\x04 truncated")

        assert extract_text(path, ".docx") == ""

    def test_odt_that_is_not_a_zip(self, tmp_path: Path):
        path = tmp_path / "broken.odt"
        path.write_text("plain text", encoding="utf-8")

        assert extract_text(path, ".odt") == ""


class TestOdtXml:
    def test_outline_levels(self):
        xml = (
            '<text:h text:outline-level="2">Two</text:h>'
            '<text:h text:outline-level="3">Three</text:h>'
            '<text:h text:outline-level="5">Five</text:h>'
        )

        assert odt_xml_to_text(xml) == "## Two\n\n### Three\n\n# Five"

    def test_line_breaks_and_entities(self):
        xml = "<text:p>a<text:line-break/>b &amp; c</text:p>"

        assert odt_xml_to_text(xml) == "a\nb & c"
