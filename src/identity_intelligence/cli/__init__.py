"""
CLI interface for the identity intelligence system.
"""

from .main import main


__all__ = ["main"]
