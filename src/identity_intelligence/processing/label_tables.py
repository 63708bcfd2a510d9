"""
Declarative label tables for the entity mapper.

Direct tables map a lowercased processor label to a semantic field for one
(document type, side). Labels in COMMON_LABELS apply to every document type
and side after the side-specific table. Fuzzy groups are tried in order for
labels with no direct mapping.

Adding a document variant means adding rows here (or in a YAML mapping file
loaded with load_mapping_file), not touching the mapper.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from ..models.data_structures import SEMANTIC_FIELDS, DocumentSide, DocumentType
from ..utils.error_handlers import ConfigurationError

logger = logging.getLogger(__name__)

DirectTable = Dict[Tuple[DocumentType, DocumentSide], Dict[str, str]]


DIRECT_LABELS: DirectTable = {
    (DocumentType.ID, DocumentSide.FRONT): {
        "first_name": "first_name",
        "last_name": "last_name",
        "first_name_arabic": "first_name_arabic",
        "last_name_arabic": "last_name_arabic",
        "dateofbirth": "date_of_birth",
        "born_in": "place_of_birth",
        "id_number": "document_number",
        "cin": "document_number",
    },
    (DocumentType.ID, DocumentSide.BACK): {
        "living_adress": "address",
        "address_in_arabic": "address_arabic",
        "expiry_date": "expiry_date",
        "issue_date": "issue_date",
    },
    (DocumentType.LICENSE, DocumentSide.FRONT): {
        "first_name": "first_name",
        "last_name": "last_name",
        "first_name_arabic": "first_name_arabic",
        "last_name_arabic": "last_name_arabic",
        "dateofbirth": "date_of_birth",
        "license_number": "license_number",
        "id_number": "license_number",
    },
    (DocumentType.LICENSE, DocumentSide.BACK): {
        "living_adress": "address",
        "address_in_arabic": "address_arabic",
        "expiry_date": "expiry_date",
        "issue_date": "issue_date",
        "restrictions": "restrictions",
    },
}

# Labels seen across processor versions, valid on every side
COMMON_LABELS: Dict[str, str] = {
    "date_of_birth": "date_of_birth",
    "expiration_date": "expiry_date",
    "date_emission": "issue_date",
    "document_id": "document_number",
    "permis": "license_number",
    "place_of_birth": "place_of_birth",
    "lieu_naissance": "place_of_birth",
    "address": "address",
    "nationality": "nationality",
    "nationalite": "nationality",
    "gender": "gender",
    "sexe": "gender",
    "categories": "license_categories",
    "license_categories": "license_categories",
    "limitations": "restrictions",
}


@dataclass(frozen=True)
class FuzzyGroup:
    """Synonyms that claim an unmatched label for one semantic field."""

    field_name: str
    synonyms: Tuple[str, ...]


FUZZY_GROUPS: Tuple[FuzzyGroup, ...] = (
    FuzzyGroup("first_name", ("first_name", "given_name", "prenom", "prénom")),
    FuzzyGroup(
        "last_name", ("last_name", "family_name", "surname", "nom_famille", "nom")
    ),
    FuzzyGroup("full_name", ("full_name", "complete_name", "nom_complet", "name")),
    FuzzyGroup(
        "date_of_birth", ("birth_date", "date_naissance", "date_of_birth", "dob")
    ),
    FuzzyGroup(
        "issue_date",
        ("issue_date", "date_emission", "date_delivrance", "delivery_date"),
    ),
    FuzzyGroup(
        "expiry_date",
        ("expiry_date", "expiration_date", "date_expiration", "valid_until"),
    ),
    FuzzyGroup(
        "document_number",
        ("document_id", "cin", "carte_identite", "id_number", "numero_cin"),
    ),
    FuzzyGroup(
        "license_number", ("license_number", "permis", "licence", "numero_permis")
    ),
    FuzzyGroup(
        "place_of_birth",
        ("birth_place", "lieu_naissance", "place_of_birth", "birthplace"),
    ),
    FuzzyGroup("address", ("address", "adresse", "domicile", "residence")),
    FuzzyGroup("nationality", ("nationality", "nationalite", "nationalité")),
    FuzzyGroup("gender", ("gender", "sexe", "sex")),
    FuzzyGroup(
        "license_categories", ("categories", "categorie", "catégorie", "category")
    ),
    FuzzyGroup(
        "place_of_issue",
        ("place_of_issue", "lieu_delivrance", "delivre_a", "issued_at"),
    ),
)


@dataclass
class LabelTables:
    """Direct tables plus fuzzy groups used by one EntityMapper."""

    direct: DirectTable
    common: Dict[str, str]
    fuzzy_groups: Tuple[FuzzyGroup, ...]

    def direct_lookup(
        self, label: str, document_type: DocumentType, side: DocumentSide
    ) -> Optional[str]:
        """Return the field for a lowercased label, or None."""
        field_name = self.direct.get((document_type, side), {}).get(label)
        if field_name is None:
            field_name = self.common.get(label)
        return field_name


def default_tables() -> LabelTables:
    """Return a fresh copy of the built-in tables."""
    return LabelTables(
        direct={key: dict(table) for key, table in DIRECT_LABELS.items()},
        common=dict(COMMON_LABELS),
        fuzzy_groups=FUZZY_GROUPS,
    )


def _check_field(field_name: str, source: str) -> str:
    if field_name not in SEMANTIC_FIELDS:
        raise ConfigurationError(
            f"Unknown semantic field '{field_name}' in {source}",
            config_key="entity_mapping.mapping_file",
        )
    return field_name


def load_mapping_file(
    mapping_file: str, base: Optional[LabelTables] = None
) -> LabelTables:
    """
    Extend label tables from a YAML mapping file.

    File layout::

        direct:
          id:
            front:
              numero_carte: document_number
        common:
          prenom_ar: first_name_arabic
        fuzzy:
          place_of_issue: [autorite]

    Direct and common rows override built-in rows with the same label. Fuzzy
    synonyms are appended to the group for that field; a field with no
    existing group gets a new group after the built-in ones.

    Args:
        mapping_file: Path to the YAML file.
        base: Tables to extend. Defaults to the built-in tables.

    Returns:
        New LabelTables instance.

    Raises:
        ConfigurationError: If the file is missing, malformed, or names an
            unknown document type, side or field.
    """
    path = Path(mapping_file)
    if not path.is_file():
        raise ConfigurationError(
            f"Mapping file not found: {mapping_file}",
            config_key="entity_mapping.mapping_file",
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse mapping file: {mapping_file}",
            config_key="entity_mapping.mapping_file",
            original_error=e,
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            "Mapping file must contain a YAML dictionary",
            config_key="entity_mapping.mapping_file",
        )

    tables = base or default_tables()
    direct = {key: dict(table) for key, table in tables.direct.items()}
    common = dict(tables.common)

    try:
        for type_value, sides in (data.get("direct") or {}).items():
            document_type = DocumentType(type_value)
            for side_value, rows in (sides or {}).items():
                side = DocumentSide(side_value)
                table = direct.setdefault((document_type, side), {})
                for label, field_name in (rows or {}).items():
                    table[str(label).lower()] = _check_field(field_name, mapping_file)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid document type or side in {mapping_file}: {e}",
            config_key="entity_mapping.mapping_file",
            original_error=e,
        ) from e

    for label, field_name in (data.get("common") or {}).items():
        common[str(label).lower()] = _check_field(field_name, mapping_file)

    groups: List[FuzzyGroup] = list(tables.fuzzy_groups)
    for field_name, synonyms in (data.get("fuzzy") or {}).items():
        _check_field(field_name, mapping_file)
        extra = tuple(str(s).lower() for s in (synonyms or []))
        for index, group in enumerate(groups):
            if group.field_name == field_name:
                groups[index] = FuzzyGroup(field_name, group.synonyms + extra)
                break
        else:
            groups.append(FuzzyGroup(field_name, extra))

    logger.info(f"Loaded label mapping extensions from {mapping_file}")
    return LabelTables(direct=direct, common=common, fuzzy_groups=tuple(groups))
