"""
==============================================================================
Frame Decoder Module
==============================================================================

Barcode decoding with OpenCV and pyzbar.

OpenCV and pyzbar (which needs the system zbar library) are imported on
first use, so the service starts and answers manual-entry scans on hosts
without camera dependencies.

==============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np


# Module logger
logger = logging.getLogger(__name__)

cv2 = None
pyzbar = None


def _load_decoders() -> None:
    """Import OpenCV and pyzbar on first use."""
    global cv2, pyzbar
    if cv2 is not None and pyzbar is not None:
        return
    try:
        import cv2 as _cv2
        from pyzbar import pyzbar as _pyzbar
    except Exception as e:
        raise RuntimeError(
            "Barcode decoding requires OpenCV (cv2) and pyzbar with the zbar "
            f"shared library installed (import error: {e})"
        ) from e
    cv2 = _cv2
    pyzbar = _pyzbar
    logger.debug("OpenCV and pyzbar loaded")


def get_cv2():
    """OpenCV module, loaded on demand."""
    _load_decoders()
    return cv2


def decoder_available() -> bool:
    try:
        _load_decoders()
    except RuntimeError as e:
        logger.warning(str(e))
        return False
    return True


@dataclass(frozen=True)
class DecodedBarcode:
    """One barcode found in a frame."""

    data: str
    type: str
    rect: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "type": self.type, "rect": dict(self.rect)}


def decode_frame(frame: Optional[np.ndarray]) -> List[DecodedBarcode]:
    """
    Decode every barcode in a BGR or grayscale frame.

    Undecodable payloads are skipped. An empty or missing frame yields no
    barcodes.
    """
    if frame is None or frame.size == 0:
        return []

    _load_decoders()

    results = []
    for barcode in pyzbar.decode(frame):
        try:
            data = barcode.data.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.warning(f"Skipping non UTF-8 {barcode.type} payload")
            continue

        if not data:
            continue

        results.append(DecodedBarcode(
            data=data,
            type=barcode.type,
            rect={
                "x": barcode.rect.left,
                "y": barcode.rect.top,
                "width": barcode.rect.width,
                "height": barcode.rect.height,
            },
        ))

    return results


def decode_image_bytes(data: bytes) -> Optional[np.ndarray]:
    """
    Decode an encoded image (JPEG, PNG, ...) into a BGR frame.

    Returns:
        The frame, or None if the bytes are not a readable image
    """
    if not data:
        return None

    _load_decoders()

    buffer = np.frombuffer(data, dtype=np.uint8)
    frame = cv2.imdecode(buffer, cv2.IMREAD_COLOR)

    if frame is None:
        logger.debug(f"Could not decode image ({len(data)} bytes)")
    return frame
