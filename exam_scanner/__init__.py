"""
Exam Barcode Scanner

Offline-first exam barcode scanning, validation and mark entry.
"""

__version__ = "1.0.0"
