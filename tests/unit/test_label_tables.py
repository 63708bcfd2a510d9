"""
Unit tests for label_tables module.
"""

import pytest

from identity_intelligence.models.data_structures import DocumentSide, DocumentType
from identity_intelligence.processing.entity_mapper import EntityMapper
from identity_intelligence.processing.label_tables import (
    DIRECT_LABELS,
    default_tables,
    load_mapping_file,
)
from identity_intelligence.utils.error_handlers import ConfigurationError

MAPPING_YAML = """
direct:
  id:
    front:
      Numero_Carte: document_number
common:
  prenom_ar: first_name_arabic
fuzzy:
  place_of_issue: [autorite]
  restrictions: [mentions_speciales]
"""


@pytest.fixture
def mapping_file(tmp_path):
    path = tmp_path / "labels.yaml"
    path.write_text(MAPPING_YAML, encoding="utf-8")
    return path


class TestDefaultTables:
    """Tests for the built-in tables."""

    def test_side_specific_lookup(self):
        tables = default_tables()

        assert tables.direct_lookup("id_number", DocumentType.ID, DocumentSide.FRONT) == (
            "document_number"
        )
        assert tables.direct_lookup(
            "id_number", DocumentType.LICENSE, DocumentSide.FRONT
        ) == "license_number"

    def test_common_fallback(self):
        tables = default_tables()

        assert tables.direct_lookup("sexe", DocumentType.ID, DocumentSide.BACK) == "gender"

    def test_unknown_label(self):
        assert default_tables().direct_lookup("foo", DocumentType.ID, DocumentSide.BACK) is None

    def test_copies_are_independent(self):
        tables = default_tables()
        tables.direct[(DocumentType.ID, DocumentSide.FRONT)]["extra"] = "address"

        assert "extra" not in DIRECT_LABELS[(DocumentType.ID, DocumentSide.FRONT)]


class TestLoadMappingFile:
    """Tests for load_mapping_file function."""

    def test_extends_tables(self, mapping_file):
        tables = load_mapping_file(str(mapping_file))

        assert tables.direct_lookup(
            "numero_carte", DocumentType.ID, DocumentSide.FRONT
        ) == "document_number"
        assert tables.direct_lookup(
            "prenom_ar", DocumentType.LICENSE, DocumentSide.BACK
        ) == "first_name_arabic"
        # built-in rows are kept
        assert tables.direct_lookup("cin", DocumentType.ID, DocumentSide.FRONT) == (
            "document_number"
        )

        groups = {group.field_name: group for group in tables.fuzzy_groups}
        assert "autorite" in groups["place_of_issue"].synonyms
        assert groups["restrictions"].synonyms == ("mentions_speciales",)
        assert tables.fuzzy_groups[-1].field_name == "restrictions"

    def test_mapper_uses_loaded_tables(self, mapping_file, recognition_result):
        mapper = EntityMapper(load_mapping_file(str(mapping_file)))
        result = recognition_result("", ("numero_carte", "K 0123456", 0.9))

        fields = mapper.map(result, DocumentType.ID, DocumentSide.FRONT)

        assert fields.document_number == "K 0123456"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_mapping_file(str(tmp_path / "absent.yaml"))

    def test_unknown_field(self, tmp_path):
        path = tmp_path / "labels.yaml"
        path.write_text("common:\n  religion: religion\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Unknown semantic field"):
            load_mapping_file(str(path))

    def test_unknown_document_type(self, tmp_path):
        path = tmp_path / "labels.yaml"
        path.write_text(
            "direct:\n  passport:\n    front:\n      x: first_name\n", encoding="utf-8"
        )

        with pytest.raises(ConfigurationError, match="Invalid document type"):
            load_mapping_file(str(path))
