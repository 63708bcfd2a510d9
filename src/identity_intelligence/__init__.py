"""
Identity Intelligence System

Extraction and reconciliation of identity fields from photographs of
Moroccan national ID cards and driving licenses.
"""

__version__ = "1.0.0"
__author__ = "Identity Intelligence Team"

# Core exports
from .orchestration import DocumentReconciler
from .models import ImageRole, ImageUpload, ReconciledRecord
from .utils.config_loader import Config

__all__ = [
    "DocumentReconciler",
    "ImageRole",
    "ImageUpload",
    "ReconciledRecord",
    "Config",
    "__version__",
]
