"""
Text-pattern extraction for the Identity Intelligence System.

Backfills fields the entity mapper left empty by searching the full
recognized text with an ordered list of regular-expression rules. Rules are
data: each names its target field, a compiled pattern, an optional
transform and the document types it applies to. For each field the first
matching rule wins. Extracted values pass through the FieldNormalizer.

Also defines DefaultValuePolicy, the explicit gender/nationality defaults
that the reconciler applies after merging documents carrying Moroccan
national markers.

Typical usage example:

    extractor = TextPatternExtractor()
    extractor.extract(fields, result.text)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from ..models.data_structures import SEMANTIC_FIELDS, DocumentType, ExtractedFields
from ..utils.text_utils import has_national_markers
from .field_normalizer import FieldNormalizer, normalize_gender

logger = logging.getLogger(__name__)

ALL_TYPES: FrozenSet[DocumentType] = frozenset(DocumentType)
LICENSE_ONLY: FrozenSet[DocumentType] = frozenset({DocumentType.LICENSE})

DATE = r"(\d{1,2}[/.\-]\d{1,2}[/.\-]\d{4})"


@dataclass(frozen=True)
class PatternRule:
    """
    One extraction rule.

    Attributes:
        field_name: Semantic field filled on match.
        pattern: Compiled pattern; group 1 (or the whole match) is the value.
        transform: Optional callable applied to the matched value.
        document_types: Document types the rule runs for.
        name: Short rule name used in logs.
    """

    field_name: str
    pattern: "re.Pattern[str]"
    transform: Optional[Callable[[str], str]] = None
    document_types: FrozenSet[DocumentType] = ALL_TYPES
    name: str = ""

    def applies_to(self, document_type: DocumentType) -> bool:
        return document_type in self.document_types

    def search(self, text: str) -> Optional[str]:
        """Return the transformed value of the first match, or None."""
        match = self.pattern.search(text)
        if not match:
            return None
        value = next((g for g in match.groups() if g), match.group(0))
        if self.transform is not None:
            value = self.transform(value)
        return value.strip() or None


def _moroccan(_: str) -> str:
    return "Moroccan"


DEFAULT_RULES: Tuple[PatternRule, ...] = (
    # Expiry date
    PatternRule(
        "expiry_date",
        re.compile(r"Valable\s+jusqu['’]au\s*:?\s*" + DATE, re.IGNORECASE),
        name="valable_jusqu_au",
    ),
    PatternRule(
        "expiry_date",
        re.compile(r"Expire\s+le\s*:?\s*" + DATE, re.IGNORECASE),
        name="expire_le",
    ),
    PatternRule(
        "expiry_date",
        re.compile(r"Date\s+d['’]expiration\s*:?\s*" + DATE, re.IGNORECASE),
        name="date_expiration",
    ),
    # Issue date
    PatternRule(
        "issue_date",
        re.compile(r"Date\s+de\s+d[ée]livrance\s*:?\s*" + DATE, re.IGNORECASE),
        name="date_delivrance",
    ),
    PatternRule(
        "issue_date",
        re.compile(r"\bLe\s+(\d{2}/\d{2}/\d{4})"),
        document_types=LICENSE_ONLY,
        name="le_date",
    ),
    # License categories
    PatternRule(
        "license_categories",
        re.compile(
            r"(?i:cat[ée]gories?)(?:\s*/\s*الأصناف)?\s*:?\s*([A-Z][A-Z0-9]?(?:[,\s]+[A-Z][A-Z0-9]?)*)\b"
        ),
        document_types=LICENSE_ONLY,
        name="categories_caption",
    ),
    PatternRule(
        "license_categories",
        re.compile(r"\b(AM|A1|EB|EC|ED|A|B|C|D)\b"),
        document_types=LICENSE_ONLY,
        name="bare_category_code",
    ),
    # Place of issue
    PatternRule(
        "place_of_issue",
        re.compile(r"d[ée]livr[ée]e?\s+à\s+([A-Za-zÀ-ÿ\-]+)", re.IGNORECASE),
        name="delivre_a",
    ),
    # License number
    PatternRule(
        "license_number",
        re.compile(r"Permis\s+N\s*[°º]?\s*:?\s*(\d+\s*/\s*\d+)", re.IGNORECASE),
        document_types=LICENSE_ONLY,
        name="permis_numero",
    ),
    # Gender
    PatternRule(
        "gender",
        re.compile(
            r"(?:Sexe|الجنس)\s*[:/]?\s*(Masculin|F[ée]minin|ذكر|أنثى|M|F)(?![A-Za-z])",
            re.IGNORECASE,
        ),
        transform=normalize_gender,
        name="sexe_caption",
    ),
    PatternRule(
        "gender",
        re.compile(r"\b(Masculin|F[ée]minin)\b|(ذكر|أنثى)", re.IGNORECASE),
        transform=normalize_gender,
        name="gender_word",
    ),
    # Nationality
    PatternRule(
        "nationality",
        re.compile(r"(Marocaine?|Maroc|Moroccan|المغرب)", re.IGNORECASE),
        transform=_moroccan,
        name="moroccan",
    ),
)


class TextPatternExtractor:
    """
    Fills unset fields from raw recognized text.

    Attributes:
        rules: Ordered extraction rules.
        normalizer: Normalizer applied to every extracted value.
    """

    def __init__(
        self,
        rules: Tuple[PatternRule, ...] = DEFAULT_RULES,
        normalizer: Optional[FieldNormalizer] = None,
    ) -> None:
        self.rules = rules
        self.normalizer = normalizer or FieldNormalizer()

    def extract(self, fields: ExtractedFields, text: Optional[str]) -> ExtractedFields:
        """
        Backfill unset fields of a record from raw text, in place.

        Also records whether the text carried Moroccan national markers.
        Does nothing when the text is empty. Never raises.

        Args:
            fields: Record produced by the mapper and normalizer.
            text: Full recognized text of the image.

        Returns:
            The same ExtractedFields instance.
        """
        if not text or not text.strip():
            return fields

        fields.has_national_markers = has_national_markers(text)

        filled: List[str] = []
        for rule in self.rules:
            if fields.has_field(rule.field_name):
                continue
            if not rule.applies_to(fields.document_type):
                continue

            value = self.normalizer.normalize_value(rule.field_name, rule.search(text))
            if value is None:
                continue

            fields.set_field(rule.field_name, value)
            filled.append(rule.field_name)
            logger.debug(
                f"Extracted {rule.field_name}={value!r} from text ({rule.name})"
            )

        if filled:
            logger.info(
                f"Text patterns filled {len(filled)} field(s) for "
                f"{fields.document_type.value} {fields.side.value}: {filled}"
            )
        return fields


@dataclass
class DefaultValuePolicy:
    """
    Explicit defaults for documents carrying Moroccan national markers.

    Applied by the reconciler after merging, only to fields still unset, and
    only when at least one successful image carried national markers.
    Applied fields are reported on the record.

    Attributes:
        enabled: Whether defaults are applied at all.
        values: Semantic field -> default value.
    """

    enabled: bool = True
    values: Dict[str, str] = field(
        default_factory=lambda: {"gender": "Male", "nationality": "Moroccan"}
    )

    def __post_init__(self) -> None:
        unknown = [name for name in self.values if name not in SEMANTIC_FIELDS]
        if unknown:
            raise ValueError(f"Unknown fields in default policy: {unknown}")
        empty = [name for name, value in self.values.items() if not value]
        if empty:
            raise ValueError(f"Empty default values for fields: {empty}")

    @classmethod
    def from_config(cls, section: Optional[Dict[str, Any]]) -> "DefaultValuePolicy":
        """
        Build a policy from the ``defaults`` configuration section.

        Listed fields replace the built-in defaults. A field left empty or
        null in the section is not defaulted.
        """
        section = dict(section or {})
        enabled = bool(section.pop("enabled", True))
        if not section:
            return cls(enabled=enabled)
        values = {
            name: str(value).strip()
            for name, value in section.items()
            if value is not None and str(value).strip()
        }
        return cls(enabled=enabled, values=values)

    def apply(self, merged: Dict[str, str], national_markers: bool) -> List[str]:
        """
        Fill unset fields of a merged field mapping in place.

        Returns:
            Names of the fields that were defaulted, in policy order.
        """
        if not self.enabled or not national_markers:
            return []

        applied: List[str] = []
        for name, value in self.values.items():
            if not merged.get(name):
                merged[name] = value
                applied.append(name)

        if applied:
            logger.info(f"Applied default values for {applied}")
        return applied
