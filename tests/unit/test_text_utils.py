"""
Unit tests for text_utils module.
"""

import pytest

from identity_intelligence.models.data_structures import DocumentSide, DocumentType
from identity_intelligence.utils.text_utils import (
    contains_arabic,
    detect_document_type,
    has_national_markers,
    normalize_whitespace,
    strip_separators,
    truncate_text,
)


def test_normalize_whitespace():
    assert normalize_whitespace("  a \n\t b  ") == "a b"


def test_strip_separators():
    assert strip_separators("Date_Of-Birth") == "dateofbirth"


def test_contains_arabic():
    assert contains_arabic("BENALI بنعلي")
    assert not contains_arabic("BENALI")


def test_has_national_markers():
    assert has_national_markers("Royaume du Maroc")
    assert has_national_markers("المملكة المغربية")
    assert not has_national_markers("République Française")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("ROYAUME DU MAROC\nPERMIS DE CONDUIRE", (DocumentType.LICENSE, DocumentSide.FRONT)),
        ("PERMIS DE CONDUIRE\nRestrictions", (DocumentType.LICENSE, DocumentSide.BACK)),
        ("CARTE NATIONALE D'IDENTITE", (DocumentType.ID, DocumentSide.FRONT)),
        ("ROYAUME DU MAROC\nAdresse: RABAT", (DocumentType.ID, DocumentSide.BACK)),
        ("random text", None),
    ],
)
def test_detect_document_type(text, expected):
    assert detect_document_type(text) == expected


def test_truncate_text():
    assert truncate_text("abcdefghij", 6) == "abc..."
    assert truncate_text("abc", 6) == "abc"
