"""
Entity mapping for the Identity Intelligence System.

Converts the typed entities of one RecognitionResult into a sparse
ExtractedFields record. Labels are looked up in the direct table for the
document type and side first; unmatched labels fall back to ordered fuzzy
synonym groups. Mapping never raises: entities that cannot be placed are
logged and dropped.

Typical usage example:

    mapper = EntityMapper()
    fields = mapper.map(result, DocumentType.ID, DocumentSide.FRONT)
    print(fields.present_fields())
"""

import logging
from typing import Optional

from ..models.data_structures import (
    DocumentSide,
    DocumentType,
    Entity,
    ExtractedFields,
    RecognitionResult,
)
from ..utils.text_utils import strip_separators
from .field_normalizer import FieldNormalizer, normalize_name
from .label_tables import FuzzyGroup, LabelTables, default_tables

logger = logging.getLogger(__name__)


def matches_synonym(label: str, synonym: str) -> bool:
    """
    Check whether a lowercased label matches one fuzzy synonym.

    The label matches when it contains the synonym, is contained by it, or
    contains it once separators (space, underscore, hyphen, dot) are
    stripped from both.
    """
    if synonym in label or label in synonym:
        return True
    stripped_synonym = strip_separators(synonym)
    return bool(stripped_synonym) and stripped_synonym in strip_separators(label)


class EntityMapper:
    """
    Maps recognition entities onto the semantic field schema.

    Attributes:
        tables: Direct label tables and fuzzy groups in use.
    """

    def __init__(self, tables: Optional[LabelTables] = None) -> None:
        self.tables = tables or default_tables()
        self.normalizer = FieldNormalizer()

    def map(
        self,
        result: RecognitionResult,
        document_type: DocumentType,
        side: DocumentSide,
    ) -> ExtractedFields:
        """
        Map one recognition result to an ExtractedFields record.

        Each entity's confidence is recorded under its original label (first
        occurrence wins), whether or not the entity is placed. The first
        entity to reach a field wins; later entities for the same field are
        dropped. An entity whose value cleans to nothing (a bare caption such as
        "PRENOM") does not claim its field. When a full name is present but neither first nor last name
        is, the full name is split into first token and remaining tokens.

        Args:
            result: Recognition output for one image.
            document_type: Document type photographed.
            side: Document side photographed.

        Returns:
            ExtractedFields carrying the raw (not yet normalized) values.
        """
        fields = ExtractedFields(
            document_type=document_type,
            side=side,
            confidence=result.confidence,
            processing_time=result.processing_time,
        )

        for entity in result.entities:
            fields.field_confidences.setdefault(entity.label, entity.confidence)

            value = (entity.value or "").strip()
            if not value:
                logger.debug(f"Skipping blank entity '{entity.label}'")
                continue

            label = entity.label.strip().lower()
            if not label:
                logger.debug("Skipping entity with empty label")
                continue

            field_name = self.tables.direct_lookup(label, document_type, side)
            if field_name is not None:
                self._assign(fields, field_name, value, entity, "direct")
                continue

            group = self._match_group(label)
            if group is not None:
                self._assign(fields, group.field_name, value, entity, "fuzzy")
                continue

            logger.debug(
                f"No mapping for entity '{entity.label}' "
                f"({document_type.value} {side.value}), dropped"
            )

        self._split_full_name(fields)

        logger.debug(
            f"Mapped {len(result.entities)} entities to "
            f"{len(fields.present_fields())} fields "
            f"({document_type.value} {side.value})"
        )
        return fields

    def _match_group(self, label: str) -> Optional[FuzzyGroup]:
        for group in self.tables.fuzzy_groups:
            if any(matches_synonym(label, synonym) for synonym in group.synonyms):
                return group
        return None

    def _assign(
        self,
        fields: ExtractedFields,
        field_name: str,
        value: str,
        entity: Entity,
        how: str,
    ) -> None:
        if fields.has_field(field_name):
            logger.debug(
                f"Field {field_name} already set, dropping {how} match "
                f"'{entity.label}'"
            )
            return
        if self.normalizer.normalize_value(field_name, value) is None:
            logger.debug(
                f"Value of '{entity.label}' is empty once cleaned, "
                f"leaving {field_name} unset"
            )
            return
        fields.set_field(field_name, value)
        fields.field_scores[field_name] = entity.confidence
        logger.debug(f"Mapped '{entity.label}' -> {field_name} ({how})")

    @staticmethod
    def _split_full_name(fields: ExtractedFields) -> None:
        if not fields.full_name or fields.first_name or fields.last_name:
            return
        parts = normalize_name(fields.full_name).split()
        if len(parts) < 2:
            return
        fields.set_field("first_name", parts[0])
        fields.set_field("last_name", " ".join(parts[1:]))
        score = fields.field_scores.get("full_name")
        if score is not None:
            fields.field_scores["first_name"] = score
            fields.field_scores["last_name"] = score
        logger.debug("Split full_name into first_name / last_name")
