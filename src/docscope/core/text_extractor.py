"""
Text extraction for indexed files.

Converts a file into plain text by dispatching on its extension:
PDF text layer, DOCX paragraphs, ODT content.xml, or UTF-8 text.
Extraction never raises; failures are logged and yield an empty string.
"""

import html
import logging
import re
import zipfile
from pathlib import Path

import docx
from pypdf import PdfReader

logger = logging.getLogger(__name__)

# ODT structural tags, applied in order before all remaining tags are stripped
_ODT_REPLACEMENTS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"<text:p[^>]*>"), "\n\n"),
    (re.compile(r'<text:h[^>]*text:outline-level="1"[^>]*>'), "\n\n# "),
    (re.compile(r'<text:h[^>]*text:outline-level="2"[^>]*>'), "\n\n## "),
    (re.compile(r'<text:h[^>]*text:outline-level="3"[^>]*>'), "\n\n### "),
    (re.compile(r"<text:h[^>]*>"), "\n\n# "),
    (re.compile(r"<text:tab\s*/>"), "    "),
    (re.compile(r"<text:line-break\s*/>"), "\n"),
]
_ANY_TAG = re.compile(r"<[^>]+>")


def _extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _extract_docx(path: Path) -> str:
    document = docx.Document(str(path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def odt_xml_to_text(content_xml: str) -> str:
    """Convert ODT content.xml into plain text with Markdown-style headings."""
    formatted = content_xml
    for pattern, replacement in _ODT_REPLACEMENTS:
        formatted = pattern.sub(replacement, formatted)
    return html.unescape(_ANY_TAG.sub("", formatted)).strip()


def _extract_odt(path: Path) -> str:
    with zipfile.ZipFile(path) as archive:
        if "content.xml" not in archive.namelist():
            return ""
        content_xml = archive.read("content.xml").decode("utf-8")
    return odt_xml_to_text(content_xml)


def _extract_plain(path: Path) -> str:
    return path.read_text(encoding="utf-8")


_EXTRACTORS = {
    ".pdf": _extract_pdf,
    ".docx": _extract_docx,
    ".odt": _extract_odt,
}


def extract_text(path: Path | str, extension: str) -> str:
    """
    Extract plain text from a file.

    Args:
        path: Path to the file
        extension: File extension including the dot (case-insensitive)

    Returns:
        Extracted text, or an empty string if the file could not be read
    """
    file_path = Path(path)
    extractor = _EXTRACTORS.get(extension.lower(), _extract_plain)
    try:
        return extractor(file_path)
    except Exception as e:
        logger.warning(f"Failed to extract text from {file_path}: {e}")
        return ""
