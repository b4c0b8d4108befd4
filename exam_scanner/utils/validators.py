"""
==============================================================================
Validation Utilities Module
==============================================================================

Validation classes for scanner input data.

This module implements:
- BarcodeCodeValidator: Validates scanned or typed barcode codes
- StudentIdValidator: Validates student identifiers
- SubjectValidator: Validates exam subject names

Validation Rules for Barcode Codes:
----------------------------------
- Leading/trailing whitespace is stripped
- Length: 1-64 characters after stripping
- No inner whitespace or control characters
- Case is preserved (codes are matched exactly)

==============================================================================
"""

from __future__ import annotations

import re
from typing import Optional, Tuple


class BarcodeCodeValidator:
    """
    Validator for barcode codes.

    Example:
        >>> validator = BarcodeCodeValidator()
        >>> validator.validate("  MATH2023001 ")
        (True, 'MATH2023001', None)
    """

    PATTERN = re.compile(r"^[\x21-\x7e]+$")

    MAX_LENGTH = 64

    def validate(self, code: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Validate and normalize a barcode code.

        Returns:
            Tuple of (is_valid, normalized_code, error_message)
        """
        if code is None:
            return False, None, "Barcode is required"

        code = code.strip()

        if not code:
            return False, None, "Barcode cannot be empty"

        if len(code) > self.MAX_LENGTH:
            return False, None, f"Barcode must be at most {self.MAX_LENGTH} characters"

        if not self.PATTERN.match(code):
            return False, None, "Barcode cannot contain spaces or control characters"

        return True, code, None

    def is_valid(self, code: Optional[str]) -> bool:
        """Quick validation check."""
        is_valid, _, _ = self.validate(code)
        return is_valid


class StudentIdValidator:
    """
    Validator for student identifiers such as STU001.

    Identifiers are upper-cased so that lookups are case-insensitive.
    """

    PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9_-]*$")

    MAX_LENGTH = 50

    def validate(self, student_id: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
        if not student_id or not student_id.strip():
            return False, None, "Student ID is required"

        student_id = student_id.strip().upper()

        if len(student_id) > self.MAX_LENGTH:
            return False, None, f"Student ID must be at most {self.MAX_LENGTH} characters"

        if not self.PATTERN.match(student_id):
            return False, None, (
                "Student ID can only contain letters, numbers, underscores, and hyphens"
            )

        return True, student_id, None


class SubjectValidator:
    """Validator for exam subject names (e.g. "Operating Systems & Lab")."""

    PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9 &+#.,()/-]*$")

    MAX_LENGTH = 100

    def validate(self, subject: Optional[str]) -> Tuple[bool, Optional[str], Optional[str]]:
        if not subject or not subject.strip():
            return False, None, "Subject is required"

        # Collapse runs of whitespace
        subject = " ".join(subject.split())

        if len(subject) > self.MAX_LENGTH:
            return False, None, f"Subject must be at most {self.MAX_LENGTH} characters"

        if not self.PATTERN.match(subject):
            return False, None, "Subject must start with a letter and contain no special symbols"

        return True, subject, None
