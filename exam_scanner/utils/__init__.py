"""
==============================================================================
Utilities Package
==============================================================================

Utility classes for the application.

Modules:
--------
- validators: Barcode code, student ID and subject validation

==============================================================================
"""

from .validators import BarcodeCodeValidator, StudentIdValidator, SubjectValidator

__all__ = [
    "BarcodeCodeValidator",
    "StudentIdValidator",
    "SubjectValidator",
]
