"""
Unit tests for field_normalizer module.
"""

import pytest

from identity_intelligence.models.data_structures import (
    DocumentSide,
    DocumentType,
    ExtractedFields,
)
from identity_intelligence.processing.field_normalizer import (
    FieldNormalizer,
    normalize_date,
    normalize_document_number,
    normalize_gender,
    normalize_license_category,
    normalize_name,
)


class TestNormalizeName:
    """Tests for normalize_name function."""

    def test_caption_and_honorific_removed(self):
        assert normalize_name("  NOM:  Mme   El Amrani ") == "El Amrani"

    def test_abbreviated_honorific(self):
        assert normalize_name("M. Youssef") == "Youssef"

    def test_name_starting_like_honorific_kept(self):
        assert normalize_name("Mrabet") == "Mrabet"
        assert normalize_name("Mmedi") == "Mmedi"

    def test_whitespace_collapsed(self):
        assert normalize_name("Fatima\n  Zahra") == "Fatima Zahra"


class TestNormalizeDate:
    """Tests for normalize_date function."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("05/03/1990", "1990-03-05"),
            ("5.3.1990", "1990-03-05"),
            ("05-03-1990", "1990-03-05"),
            ("née le 12/11/1985", "1985-11-12"),
            ("1990/03/05", "1990-03-05"),
            ("1990-03-05", "1990-03-05"),
        ],
    )
    def test_formats(self, value, expected):
        assert normalize_date(value) == expected

    def test_impossible_date_unchanged(self):
        assert normalize_date(" 31/02/1990 ") == "31/02/1990"

    def test_unrecognized_unchanged(self):
        assert normalize_date("inconnue") == "inconnue"


class TestNormalizeDocumentNumber:
    """Tests for normalize_document_number function."""

    def test_prefix_and_spaces_removed(self):
        assert normalize_document_number("CIN: ab 123456") == "AB123456"

    def test_numero_prefix(self):
        assert normalize_document_number("N° 12 / 345678") == "12/345678"

    def test_plain_number(self):
        assert normalize_document_number("BE654321") == "BE654321"

    @pytest.mark.parametrize(
        "value", ["N°AB123456", "#AB123456", "Nº AB123456", "CIN:AB123456", "No. AB123456"]
    )
    def test_prefix_before_letter_series(self, value):
        assert normalize_document_number(value) == "AB123456"

    def test_word_prefix_kept_inside_series(self):
        assert normalize_document_number("IDX98765") == "IDX98765"


class TestNormalizeLicenseCategory:
    """Tests for normalize_license_category function."""

    def test_first_code_kept(self):
        assert normalize_license_category("b, c") == "B - Car"

    def test_legacy_code(self):
        assert normalize_license_category("A2") == "A - Large Motorcycle"

    def test_label_passes_through(self):
        assert normalize_license_category("EB - Car with Trailer") == "EB - Car with Trailer"

    def test_unknown_code_unchanged(self):
        assert normalize_license_category("Z9") == "Z9"


class TestNormalizeGender:
    """Tests for normalize_gender function."""

    @pytest.mark.parametrize(
        "value, expected",
        [("F", "Female"), ("masculin", "Male"), ("Féminin", "Female"), ("ذكر", "Male")],
    )
    def test_known_values(self, value, expected):
        assert normalize_gender(value) == expected

    def test_unknown_value_kept(self):
        assert normalize_gender("X") == "X"


@pytest.mark.parametrize(
    "normalizer, value",
    [
        (normalize_name, "NOM: Mme Mlle Bennani"),
        (normalize_date, "née 1/2/2001"),
        (normalize_date, "31/02/1990"),
        (normalize_document_number, "No: N° 1234"),
        (normalize_license_category, "a1 b"),
        (normalize_gender, " homme "),
    ],
)
def test_normalizers_are_idempotent(normalizer, value):
    once = normalizer(value)
    assert normalizer(once) == once


class TestFieldNormalizer:
    """Tests for FieldNormalizer class."""

    def test_normalize_in_place(self):
        fields = ExtractedFields(document_type=DocumentType.ID, side=DocumentSide.FRONT)
        fields.set_field("first_name", "M. Omar")
        fields.set_field("date_of_birth", "01/02/1979")
        fields.set_field("document_number", "cin k 01234567")
        fields.set_field("address", "12  Rue   Atlas")

        result = FieldNormalizer().normalize(fields)

        assert result is fields
        assert fields.first_name == "Omar"
        assert fields.date_of_birth == "1979-02-01"
        assert fields.document_number == "K01234567"
        assert fields.address == "12 Rue Atlas"

    def test_value_emptied_by_cleaning_becomes_absent(self):
        fields = ExtractedFields(document_type=DocumentType.ID, side=DocumentSide.FRONT)
        fields.set_field("first_name", "Mme")
        fields.field_scores["first_name"] = 0.9

        FieldNormalizer().normalize(fields)

        assert fields.first_name is None
        assert "first_name" not in fields.field_scores

    def test_normalize_value_none(self):
        assert FieldNormalizer().normalize_value("first_name", None) is None
