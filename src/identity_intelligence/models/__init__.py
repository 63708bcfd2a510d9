"""Data models for the Identity Intelligence System."""

from .data_structures import (
    DocumentSide,
    DocumentType,
    Entity,
    ExtractedFields,
    ImageOutcome,
    ImageRole,
    ImageUpload,
    RecognitionResult,
    ReconciledRecord,
    ROLE_PRIORITY,
    SEMANTIC_FIELDS,
    Severity,
    ValidationIssue,
    ValidationReport,
)

__all__ = [
    "DocumentSide",
    "DocumentType",
    "Entity",
    "ExtractedFields",
    "ImageOutcome",
    "ImageRole",
    "ImageUpload",
    "RecognitionResult",
    "ReconciledRecord",
    "ROLE_PRIORITY",
    "SEMANTIC_FIELDS",
    "Severity",
    "ValidationIssue",
    "ValidationReport",
]
