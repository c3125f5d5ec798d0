"""
Text Processing Utilities.

This module provides centralized text cleaning and normalization functions
used by chunking, snippet selection, and the claim check. Text is normalized
the same way when it is stored and when it is later compared.

Architecture Context
--------------------
Text utilities are used at multiple pipeline stages:

    ┌─────────────────┐     ┌─────────────────┐     ┌─────────────────┐
    │    Ingestion    │────→│    Chunking     │────→│    Retrieval    │
    │ read_text_...() │     │ sanitize_...()  │     │ normalize_ws()  │
    └─────────────────┘     └─────────────────┘     └─────────────────┘

Functions
---------
**sanitize_extracted_text(text)**
    Repairs Unicode artifacts left by text extraction: byte-order marks,
    non-breaking spaces, replacement characters, and dash variants.

**normalize_whitespace(text)**
    All whitespace becomes single spaces. Used for comparison and display.

**normalize_for_match(text)**
    Lowercased NFKC form keeping only letters, digits, ``.``, ``/`` and
    ``-``. Used to compare question texts and to score lexical overlap.

**read_text_with_fallback(file_path)**
    Read a text file trying several encodings.

**truncate_text(text, max_length)**
    Truncate text with a suffix for previews and logging.
"""

import re
import unicodedata
from pathlib import Path

_BOM = "\ufeff"
_NBSP = "\u00a0"
_REPLACEMENT = "\ufffd"

# Replacement character between digits: "30\ufffd90" -> "30-90"
_DIGIT_RANGE_REPLACEMENT = re.compile("(\\d)\\s*\ufffd\\s*(\\d)")
# Hyphen, non-breaking hyphen, figure dash, en dash, em dash, bar, minus sign
_DASH_VARIANTS = re.compile("[\u2010\u2011\u2012\u2013\u2014\u2015\u2212]")
_NON_MATCH_CHARS = re.compile(r"[^a-z0-9./\s-]+")


def sanitize_extracted_text(text: str) -> str:
    """Repair Unicode artifacts from text extraction.

    Args:
        text: Raw extracted text

    Returns:
        Text with BOMs removed, non-breaking spaces as plain spaces,
        replacement characters turned into hyphens, and dash variants
        folded to an ASCII hyphen.

    Examples:
        >>> sanitize_extracted_text("Retention 30\\ufffd90 days")
        'Retention 30-90 days'
        >>> sanitize_extracted_text("TLS\\u00a01.2 \\u2014 required")
        'TLS 1.2 - required'
    """
    if not text:
        return ""

    cleaned = text.replace(_BOM, "").replace(_NBSP, " ")
    cleaned = _DIGIT_RANGE_REPLACEMENT.sub(r"\1-\2", cleaned)
    cleaned = cleaned.replace(_REPLACEMENT, "-")
    return _DASH_VARIANTS.sub("-", cleaned)


def normalize_whitespace(text: str) -> str:
    """Normalize all whitespace to single spaces.

    Examples:
        >>> normalize_whitespace("Hello\\n\\tWorld")
        'Hello World'
    """
    return re.sub(r"\s+", " ", text).strip()


def normalize_for_match(text: str) -> str:
    """Canonical form used for question and token comparison.

    Examples:
        >>> normalize_for_match("Do you enforce TLS\\u00a01.2?")
        'do you enforce tls 1.2'
        >>> normalize_for_match("Re\\u2013use of MFA tokens!")
        're-use of mfa tokens'
    """
    cleaned = unicodedata.normalize("NFKC", sanitize_extracted_text(text or ""))
    cleaned = _DASH_VARIANTS.sub("-", cleaned).lower()
    return normalize_whitespace(_NON_MATCH_CHARS.sub(" ", cleaned))


def normalize_newlines(text: str) -> str:
    """Convert CRLF and lone CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def read_text_with_fallback(file_path: Path) -> str:
    """Read text file trying multiple encodings.

    Args:
        file_path: Path to the text file

    Returns:
        The file contents as a string

    Raises:
        FileNotFoundError: If the file does not exist
    """
    encodings = ["utf-8", "utf-8-sig", "cp1252", "latin-1"]

    for encoding in encodings:
        try:
            return file_path.read_text(encoding=encoding)
        except (UnicodeDecodeError, LookupError):
            continue

    return file_path.read_bytes().decode("utf-8", errors="ignore")


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate text to maximum length, adding suffix if truncated.

    Examples:
        >>> truncate_text("This is a long sentence", 10)
        'This is...'
        >>> truncate_text("Short", 10)
        'Short'
    """
    if len(text) <= max_length:
        return text

    return text[: max_length - len(suffix)] + suffix
