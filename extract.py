"""
extract.py - Statement text boundary for the reconciliation pipeline.

This module turns a statement file (.pdf, or a .txt copy of the PDF text)
into a `StatementText`, and checks that the text looks like a loyalty
activity statement before any extractor sees it.

Pipeline role:
- It is the only module that knows anything about pypdf.
- Structural failures (missing file, unreadable PDF, no pages) are raised
  here, before parsing starts. Everything downstream works on plain text.

Design notes:
- Pages are joined with newlines. Exact layout fidelity is not needed: the
  extractors collapse line breaks and rely on "DD Month YYYY" and
  "label: value" fragments staying on one line.
- Validation never raises. Its errors and warnings are reported alongside
  the analysis so a user can tell why a statement produced little data.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional, Union

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from logging_config import get_logger
from models import StatementText, TextValidation

logger = get_logger(__name__)

# -- Configuration --

SUPPORTED_EXTENSIONS = {".pdf", ".txt"}

# Maximum file size (bytes) before warning
MAX_FILE_SIZE_BYTES = 20 * 1024 * 1024  # 20 MB

# A one-page statement with a handful of transactions is 500+ characters.
MIN_TEXT_LENGTH = 200

MAX_TEXT_LENGTH = 500_000

MIN_CONTENT_INDICATORS = 2

MIN_LINE_COUNT = 10

CONTENT_INDICATORS = (
    re.compile(r"Flying\s*Blue", re.IGNORECASE),
    re.compile(r"Miles\s+\d+\s*XP", re.IGNORECASE),
    re.compile(r"Activiteiten(?:geschiedenis|overzicht)", re.IGNORECASE),
    re.compile(r"Activity\s+(?:history|overview)", re.IGNORECASE),
    re.compile(r"[A-Z]{3}\s*[-–]\s*[A-Z]{3}\s+[A-Z]{2}\d{2,4}"),
)

HTML_PATTERN = re.compile(r"<html|<div|<span|<table", re.IGNORECASE)

LANGUAGE_INDICATORS: dict[str, tuple[re.Pattern, ...]] = {
    "nl": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"Activiteitengeschiedenis",
            r"Mijn\s+reis\s+naar",
            r"gespaarde\s+Miles",
            r"Aftrek\s+XP-teller",
            r"beschikbaar",
            r"Winkelen",
            r"overdragen",
            r"Pagina",
        )
    ),
    "en": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"Activity\s+history",
            r"My\s+trip\s+to",
            r"earned\s+Miles",
            r"XP\s+counter\s+deduction",
            r"available",
            r"Shopping",
            r"transfer",
            r"Page\s+\d",
        )
    ),
    "fr": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"Historique\s+d'activité",
            r"Mon\s+voyage",
            r"Miles\s+gagnés",
            r"Déduction",
            r"disponible",
            r"Achats",
            r"transférer",
        )
    ),
    "de": tuple(
        re.compile(pattern, re.IGNORECASE)
        for pattern in (
            r"Aktivitätsverlauf",
            r"Meine\s+Reise",
            r"gesammelte\s+Miles",
            r"Abzug",
            r"verfügbar",
            r"Einkaufen",
        )
    ),
}


class StatementReadError(ValueError):
    """The statement file exists but no text could be read from it."""


def _resolve_path(file_path: Union[str, Path, None]) -> Path:
    if file_path is None:
        raise ValueError("file_path cannot be None")
    raw = str(file_path).strip()
    if not raw:
        raise ValueError("file_path cannot be empty")

    path = Path(raw)
    if not path.is_absolute():
        path = Path.cwd() / path
    if not path.exists():
        raise FileNotFoundError(
            f"Statement file not found: {raw}\n"
            f"Resolved path: {path}\n"
            f"Current directory: {Path.cwd()}"
        )
    return path


def _read_pdf(path: Path) -> tuple[str, int]:
    try:
        reader = PdfReader(str(path))
        if not reader.pages:
            raise StatementReadError(f"PDF has no pages: {path.name}")
        pages = [page.extract_text() or "" for page in reader.pages]
    except PyPdfError as exc:
        raise StatementReadError(f"Not a readable PDF: {path.name} ({exc})") from exc
    return "\n".join(pages), len(pages)


def _read_text_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        # Fallback for text saved from Windows tools.
        logger.warning("text_encoding_warning | file=%s | fallback=cp1252", path.name)
        return path.read_text(encoding="cp1252")


def extract_statement_text(file_path: Union[str, Path], as_text: bool = False) -> StatementText:
    """Read a statement file into plain text.

    This is the ONLY entry point the rest of the pipeline uses for files.
    PDFs are read with pypdf, one page at a time, and the page texts are
    joined with newlines. A .txt file is taken as already-extracted text
    and reported as a single page.
    `as_text` forces text mode whatever the file extension.

    Raises:
        FileNotFoundError: If file_path doesn't exist.
        StatementReadError: If the file is empty, not a readable PDF, or
            yields no text at all.
    """
    path = _resolve_path(file_path)
    suffix = ".txt" if as_text else path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        logger.warning(
            "extract_extension_warning | extension=%s | file=%s | supported=%s | fallback=pdf",
            path.suffix,
            path.name,
            ", ".join(sorted(SUPPORTED_EXTENSIONS)),
        )

    file_size = path.stat().st_size
    if file_size == 0:
        raise StatementReadError(f"Statement file is empty (0 bytes): {path.name}")
    if file_size > MAX_FILE_SIZE_BYTES:
        logger.warning(
            "extract_file_size_warning | size_mb=%.1f | file=%s",
            file_size / 1024 / 1024,
            path.name,
        )

    logger.info("extract_start | file=%s | mode=%s", path.name, "text" if suffix == ".txt" else "pdf")
    if suffix == ".txt":
        text, page_count = _read_text_file(path), 1
    else:
        text, page_count = _read_pdf(path)

    if not text.strip():
        raise StatementReadError(
            f"No text could be extracted from {path.name}. Scanned (image-only) PDFs are not supported."
        )

    logger.info(
        "extract_complete | file=%s | pages=%s | chars=%s",
        path.name,
        page_count,
        len(text),
    )
    return StatementText(text=text, page_count=page_count, source=path.name)


def detect_language(text: str) -> Optional[str]:
    """Most likely statement language ("nl", "en", "fr", "de"), or None."""
    scores = {
        language: sum(1 for pattern in patterns if pattern.search(text))
        for language, patterns in LANGUAGE_INDICATORS.items()
    }
    best = max(scores, key=lambda language: scores[language])
    if scores[best] == 0:
        return None
    return best


def validate_statement_text(text: Optional[str]) -> TextValidation:
    """Check that raw text looks like a complete activity statement.

    Errors describe input that will almost certainly parse badly (too short,
    not a statement, pasted HTML). Warnings describe input that will parse
    but may lose detail.
    """
    if not text or not text.strip():
        return TextValidation(
            is_valid=False,
            is_statement_content=False,
            errors=["No text provided"],
        )

    trimmed = text.strip()
    errors: list[str] = []
    warnings: list[str] = []

    if len(trimmed) < MIN_TEXT_LENGTH:
        errors.append(
            f"Text is too short ({len(trimmed)} characters). "
            "Activity statements are typically much longer; the PDF may be truncated."
        )
    if len(trimmed) > MAX_TEXT_LENGTH:
        errors.append(f"Text is too long ({len(trimmed)} characters).")

    indicator_count = sum(1 for pattern in CONTENT_INDICATORS if pattern.search(trimmed))
    is_statement = indicator_count >= MIN_CONTENT_INDICATORS
    if not is_statement:
        errors.append(
            "This doesn't appear to be a Flying Blue activity statement "
            f"({indicator_count} of {MIN_CONTENT_INDICATORS} content markers found)."
        )

    language: Optional[str] = None
    if is_statement:
        language = detect_language(trimmed)
        if language == "de":
            warnings.append(
                "German language detected. Some transaction types may not be fully supported yet."
            )

    if "�" in trimmed:
        warnings.append("Some characters were not decoded correctly; names may appear garbled.")

    if HTML_PATTERN.search(trimmed):
        errors.append("The text contains HTML markup. Use the PDF statement, not a web page copy.")

    line_count = len(trimmed.split("\n"))
    if is_statement and line_count < MIN_LINE_COUNT:
        warnings.append(f"Only {line_count} lines detected. The statement may be incomplete.")

    validation = TextValidation(
        is_valid=not errors,
        is_statement_content=is_statement,
        language=language,
        errors=errors,
        warnings=warnings,
    )
    logger.info(
        "validate_complete | valid=%s | indicators=%s | language=%s | errors=%s | warnings=%s",
        validation.is_valid,
        indicator_count,
        language,
        len(errors),
        len(warnings),
    )
    return validation
