"""
==============================================================================
Scanner Package - Barcode Detection
==============================================================================

Barcode scanning with OpenCV and pyzbar.

Classes:
--------
- BarcodeScanner: Scan session with first-detection stop and timeout
- DecodedBarcode: One barcode found in a frame

Functions:
----------
- decode_frame: Decode barcodes in an OpenCV frame
- decode_image_bytes: Decode a JPEG/PNG payload into a frame
- decoder_available: Whether OpenCV and pyzbar can be loaded

==============================================================================
"""

from .core import BarcodeScanner, ScanTimeoutError, SCAN_TIMEOUT_MESSAGE
from .decoder import DecodedBarcode, decode_frame, decode_image_bytes, decoder_available

__all__ = [
    "BarcodeScanner",
    "ScanTimeoutError",
    "SCAN_TIMEOUT_MESSAGE",
    "DecodedBarcode",
    "decode_frame",
    "decode_image_bytes",
    "decoder_available",
]
