"""Plain-text extraction for supported file types.

Every failure is reported as ExtractionError so ingestion can skip the file
with a warning and carry on with the rest of the corpus.
"""

from __future__ import annotations

from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from knowledge_engine.errors import ExtractionError

PDF_EXTS = {".pdf"}
TEXT_EXTS = {".txt", ".md", ".markdown", ".rst", ".text"}


def extract_text(path: Path) -> str:
    """Return the plain text of *path*, dispatching on its extension.

    Raises:
        ExtractionError: Unsupported extension, unreadable/undecodable file,
            broken PDF, or no extractable text.
    """
    ext = path.suffix.lower()
    if ext in PDF_EXTS:
        text = _extract_pdf(path)
    elif ext in TEXT_EXTS:
        text = _extract_plaintext(path)
    else:
        raise ExtractionError(str(path), f"unsupported file type {ext!r}")

    if not text.strip():
        raise ExtractionError(str(path), "no extractable text")
    return text


def _extract_plaintext(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ExtractionError(str(path), f"not valid UTF-8 ({exc.reason})") from exc
    except OSError as exc:
        raise ExtractionError(str(path), f"cannot read file ({exc.strerror})") from exc


def _extract_pdf(path: Path) -> str:
    """Extract all page text; pages without text (scanned images) are skipped."""
    try:
        reader = pypdf.PdfReader(path)
        parts: list[str] = []
        for page in reader.pages:
            stripped = (page.extract_text() or "").strip()
            if stripped:
                parts.append(stripped)
    except (PyPdfError, OSError, ValueError) as exc:
        raise ExtractionError(str(path), f"PDF extraction failed ({exc})") from exc
    return "\n\n".join(parts)
