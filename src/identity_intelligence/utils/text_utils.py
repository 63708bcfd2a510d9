"""
Text utilities for the Identity Intelligence System.

Provides whitespace and label normalization plus keyword heuristics over the
full recognized text of Moroccan identity documents (French and Arabic).
"""

import re
from typing import Iterable, Optional, Tuple

from ..models.data_structures import DocumentSide, DocumentType

# Separators ignored when comparing entity labels ("date-of_birth" == "dateofbirth")
LABEL_SEPARATORS = re.compile(r"[\s_\-.]+")

ARABIC_CHARS = re.compile(
    r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"
)

# Texts printed on Moroccan national documents
NATIONAL_MARKERS = (
    "royaume du maroc",
    "carte nationale",
    "carte nationale d'identite",
    "carte nationale d'identité",
    "المملكة المغربية",
    "البطاقة الوطنية",
)

LICENSE_MARKERS = (
    "permis de conduire",
    "driving license",
    "driving licence",
    "رخصة السياقة",
    "categories",
    "catégories",
)

LICENSE_BACK_MARKERS = ("restrictions", "limitations", "codes", "observations")

ID_MARKERS = (
    "carte nationale",
    "identité",
    "identite",
    "royaume du maroc",
    "البطاقة الوطنية",
)

ID_BACK_MARKERS = (
    "adresse",
    "address",
    "lieu de naissance",
    "date de délivrance",
    "date de delivrance",
)


def normalize_whitespace(text: str) -> str:
    """
    Normalize multiple spaces, tabs, newlines to single space.

    Args:
        text: Input text

    Returns:
        Normalized text with single spaces
    """
    normalized = re.sub(r"\s+", " ", text)
    return normalized.strip()


def strip_separators(label: str) -> str:
    """
    Remove label separators (space, underscore, hyphen, dot) and lowercase.

    Args:
        label: Entity label such as "Date_Of-Birth"

    Returns:
        Compact label such as "dateofbirth"
    """
    return LABEL_SEPARATORS.sub("", label).lower()


def contains_arabic(text: str) -> bool:
    """Check whether text contains any Arabic script character."""
    return bool(ARABIC_CHARS.search(text or ""))


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """
    Case-insensitive check that text contains at least one keyword.

    Args:
        text: Text to search
        keywords: Candidate keywords

    Returns:
        True if any keyword occurs in text
    """
    if not text:
        return False
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def has_national_markers(text: str) -> bool:
    """Check for French/Arabic markers printed on Moroccan national documents."""
    return contains_any(text, NATIONAL_MARKERS)


def detect_document_type(text: str) -> Optional[Tuple[DocumentType, DocumentSide]]:
    """
    Guess document type and side from full recognized text.

    License keywords take precedence over national ID keywords because
    Moroccan licenses also carry "ROYAUME DU MAROC".

    Args:
        text: Full recognized text

    Returns:
        (DocumentType, DocumentSide) or None when no keyword matched.
    """
    if contains_any(text, LICENSE_MARKERS):
        if contains_any(text, LICENSE_BACK_MARKERS):
            return DocumentType.LICENSE, DocumentSide.BACK
        return DocumentType.LICENSE, DocumentSide.FRONT

    if contains_any(text, ID_MARKERS):
        if contains_any(text, ID_BACK_MARKERS):
            return DocumentType.ID, DocumentSide.BACK
        return DocumentType.ID, DocumentSide.FRONT

    return None


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to maximum length with suffix.

    Args:
        text: Input text
        max_length: Maximum length including suffix
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[: max_length - len(suffix)] + suffix
