"""
Core data structures for the Identity Intelligence System.

Defines the document taxonomy (document types, sides, image roles) and the
records that flow through the extraction pipeline:

    RecognitionResult -> ExtractedFields -> ReconciledRecord

Classes:
    DocumentType: Supported identity document families.
    DocumentSide: Physical side of a document.
    ImageRole: Role of one uploaded image (document type + side).
    Entity: One labeled value returned by the recognition service.
    RecognitionResult: Raw output of one recognition call.
    ExtractedFields: Semantic field set extracted from one image.
    ImageUpload: Image bytes plus MIME type and optional file name.
    ImageOutcome: Success or failure of one image pipeline.
    Severity: Validation issue severity levels.
    ValidationIssue: One problem found on a reconciled field.
    ValidationReport: Field validation summary for a reconciled record.
    ReconciledRecord: Final merged record handed to the caller.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class DocumentType(Enum):
    """Identity document families handled by the pipeline."""

    ID = "id"
    LICENSE = "license"


class DocumentSide(Enum):
    """Physical side of an identity document."""

    FRONT = "front"
    BACK = "back"


class ImageRole(Enum):
    """Role of one uploaded image in a client-registration attempt."""

    ID_FRONT = "id_front"
    ID_BACK = "id_back"
    LICENSE_FRONT = "license_front"
    LICENSE_BACK = "license_back"

    @property
    def document_type(self) -> DocumentType:
        """Document type photographed in this role."""
        if self in (ImageRole.ID_FRONT, ImageRole.ID_BACK):
            return DocumentType.ID
        return DocumentType.LICENSE

    @property
    def side(self) -> DocumentSide:
        """Document side photographed in this role."""
        if self in (ImageRole.ID_FRONT, ImageRole.LICENSE_FRONT):
            return DocumentSide.FRONT
        return DocumentSide.BACK

    @classmethod
    def from_value(cls, value: Any) -> "ImageRole":
        """
        Coerce a role or role string ("id_front", "license-back") to ImageRole.

        Raises:
            ValueError: If the value does not name a known role.
        """
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower().replace("-", "_")
        for role in cls:
            if role.value == normalized:
                return role
        raise ValueError(f"Unknown image role: {value!r}")


# Merge order used by the reconciler; earlier roles win field conflicts.
ROLE_PRIORITY: Tuple[ImageRole, ...] = (
    ImageRole.ID_FRONT,
    ImageRole.ID_BACK,
    ImageRole.LICENSE_FRONT,
    ImageRole.LICENSE_BACK,
)

# Semantic fields in output order.
SEMANTIC_FIELDS: Tuple[str, ...] = (
    "first_name",
    "last_name",
    "full_name",
    "first_name_arabic",
    "last_name_arabic",
    "gender",
    "nationality",
    "date_of_birth",
    "place_of_birth",
    "address",
    "address_arabic",
    "document_number",
    "license_number",
    "issue_date",
    "expiry_date",
    "license_categories",
    "restrictions",
    "place_of_issue",
)


@dataclass(frozen=True)
class Entity:
    """
    One labeled value detected by the recognition service.

    Attributes:
        label: Entity type as reported by the processor (e.g. "first_name").
        value: Recognized text for the entity.
        confidence: Recognition confidence between 0.0 and 1.0.
    """

    label: str
    value: str
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Entity confidence must be between 0.0 and 1.0, got {self.confidence}"
            )


@dataclass(frozen=True)
class RecognitionResult:
    """
    Raw output of one recognition call.

    Attributes:
        text: Full recognized text of the image.
        entities: Typed entities in the order the service returned them.
        processing_time: Elapsed wall-clock time of the call in seconds.
        processor_id: Identifier of the processor that handled the image.
    """

    text: str
    entities: Tuple[Entity, ...] = ()
    processing_time: float = 0.0
    processor_id: str = ""

    @property
    def confidence(self) -> float:
        """Mean entity confidence, 0.0 when no entities were returned."""
        if not self.entities:
            return 0.0
        return sum(e.confidence for e in self.entities) / len(self.entities)


@dataclass
class ExtractedFields:
    """
    Sparse semantic field set extracted from one image.

    Absent fields are None, never an empty string, so that "unknown" stays
    distinguishable from "known empty" during reconciliation. Use
    set_field() rather than plain attribute assignment to keep that
    invariant.

    field_confidences is keyed by the original entity label; field_scores
    holds the confidence of the entity that supplied each semantic field.
    """

    document_type: DocumentType
    side: DocumentSide

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    first_name_arabic: Optional[str] = None
    last_name_arabic: Optional[str] = None
    gender: Optional[str] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    place_of_birth: Optional[str] = None
    address: Optional[str] = None
    address_arabic: Optional[str] = None
    document_number: Optional[str] = None
    license_number: Optional[str] = None
    issue_date: Optional[str] = None
    expiry_date: Optional[str] = None
    license_categories: Optional[str] = None
    restrictions: Optional[str] = None
    place_of_issue: Optional[str] = None

    confidence: float = 0.0
    field_confidences: Dict[str, float] = field(default_factory=dict)
    field_scores: Dict[str, float] = field(default_factory=dict)
    processing_time: float = 0.0
    has_national_markers: bool = False
    extracted_at: datetime = field(default_factory=datetime.now)

    def get_field(self, name: str) -> Optional[str]:
        """Return the value of a semantic field."""
        if name not in SEMANTIC_FIELDS:
            raise KeyError(f"Unknown semantic field: {name}")
        return getattr(self, name)

    def set_field(self, name: str, value: Optional[str]) -> None:
        """
        Set a semantic field, storing None for empty or whitespace values.

        Raises:
            KeyError: If name is not a semantic field.
        """
        if name not in SEMANTIC_FIELDS:
            raise KeyError(f"Unknown semantic field: {name}")
        if value is not None:
            value = value.strip() or None
        if value is None:
            self.field_scores.pop(name, None)
        setattr(self, name, value)

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    def present_fields(self) -> Dict[str, str]:
        """Return all set semantic fields in output order."""
        return {
            name: getattr(self, name)
            for name in SEMANTIC_FIELDS
            if getattr(self, name) is not None
        }


@dataclass(frozen=True)
class ImageUpload:
    """
    One uploaded image.

    Attributes:
        content: Raw image bytes.
        mime_type: MIME type; detected from the bytes when None.
        filename: Optional file reference kept for later re-display.
    """

    content: bytes
    mime_type: Optional[str] = None
    filename: Optional[str] = None


@dataclass
class ImageOutcome:
    """
    Result of one image pipeline.

    Attributes:
        role: Image role that was processed.
        success: Whether the pipeline produced a field set.
        fields: Extracted fields when successful.
        error: Serialized error details when failed.
        processing_time: Total pipeline time in seconds.
        warnings: Non-fatal observations (e.g. role/text mismatch).
    """

    role: ImageRole
    success: bool
    fields: Optional[ExtractedFields] = None
    error: Optional[Dict[str, Any]] = None
    processing_time: float = 0.0
    warnings: List[str] = field(default_factory=list)

    @property
    def error_message(self) -> Optional[str]:
        if self.error is None:
            return None
        return self.error.get("message")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "success": self.success,
            "fields": self.fields.present_fields() if self.fields else {},
            "confidence": self.fields.confidence if self.fields else 0.0,
            "error": self.error,
            "processing_time": round(self.processing_time, 3),
            "warnings": list(self.warnings),
        }


class Severity(Enum):
    """Validation issue severity levels."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class ValidationIssue:
    """One problem found on a reconciled field."""

    field_name: str
    severity: Severity
    message: str


@dataclass
class ValidationReport:
    """
    Field validation summary for a reconciled record.

    Attributes:
        is_valid: False when any issue is CRITICAL or HIGH.
        issues: All issues found.
        overall_confidence: Importance-weighted confidence of present fields.
        recommended_actions: Human-readable follow-ups for the reviewer.
    """

    is_valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    overall_confidence: float = 0.0
    recommended_actions: List[str] = field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        return not self.is_valid or bool(self.issues)

    def issues_for(self, field_name: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.field_name == field_name]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "needs_review": self.needs_review,
            "overall_confidence": round(self.overall_confidence, 4),
            "issues": [
                {
                    "field": i.field_name,
                    "severity": i.severity.value,
                    "message": i.message,
                }
                for i in self.issues
            ],
            "recommended_actions": list(self.recommended_actions),
        }


@dataclass(frozen=True)
class ReconciledRecord:
    """
    Final merged record for one client-registration attempt.

    Built once by the reconciler and never mutated; re-processing requires a
    new reconcile() call. The field mappings are exposed as read-only views.

    Attributes:
        fields: Merged semantic fields (only present ones).
        field_sources: Semantic field -> role value that supplied it.
        source_files: All four role values -> supplied file reference or None.
        document_type_label: Combined label such as
            "National ID + Driving License".
        confidence: Mean confidence of the successful images.
        field_confidences: Entity label -> confidence across all images.
        defaulted_fields: Fields filled by the default-value policy.
        validation_report: Optional field validation summary.
        created_at: Creation timestamp.
    """

    fields: Mapping[str, str]
    field_sources: Mapping[str, str]
    source_files: Mapping[str, Optional[str]]
    document_type_label: str
    confidence: float
    field_confidences: Mapping[str, float] = field(default_factory=dict)
    defaulted_fields: Tuple[str, ...] = ()
    validation_report: Optional[ValidationReport] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        for name in ("fields", "field_sources", "source_files", "field_confidences"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def get(self, name: str) -> Optional[str]:
        return self.fields.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": dict(self.fields),
            "field_sources": dict(self.field_sources),
            "source_files": dict(self.source_files),
            "document_type": self.document_type_label,
            "confidence": round(self.confidence, 4),
            "field_confidences": dict(self.field_confidences),
            "defaulted_fields": list(self.defaulted_fields),
            "validation": (
                self.validation_report.to_dict() if self.validation_report else None
            ),
            "created_at": self.created_at.isoformat(),
        }
