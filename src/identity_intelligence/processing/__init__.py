"""
Processing modules for the Identity Intelligence System.

This package contains the per-image extraction components and the field
validator applied to reconciled records.
"""

from .recognition_adapter import RecognitionAdapter, RecognitionConfig
from .entity_mapper import EntityMapper
from .label_tables import LabelTables, default_tables, load_mapping_file
from .field_normalizer import FieldNormalizer
from .text_pattern_extractor import DefaultValuePolicy, TextPatternExtractor
from .field_validator import FieldValidationConfig, FieldValidator

__all__ = [
    "RecognitionAdapter",
    "RecognitionConfig",
    "EntityMapper",
    "LabelTables",
    "default_tables",
    "load_mapping_file",
    "FieldNormalizer",
    "DefaultValuePolicy",
    "TextPatternExtractor",
    "FieldValidationConfig",
    "FieldValidator",
]
