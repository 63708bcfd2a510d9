"""Orchestration modules for the Identity Intelligence System."""

from .document_reconciler import (
    DocumentReconciler,
    ReconcilerConfig,
    combined_document_label,
)

__all__ = ["DocumentReconciler", "ReconcilerConfig", "combined_document_label"]
