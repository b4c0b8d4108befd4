"""
==============================================================================
Barcode Scanner Core Module
==============================================================================

Scan session lifecycle: start, frame feeding, first-detection stop and
timeout.

Session States:
--------------
    idle ──start()──▶ scanning ──first detection──▶ idle  (on_detected)
                         │  │
                         │  └──timeout──▶ idle  (on_error ScanTimeoutError)
                         └──stop()──▶ idle

start() and stop() are idempotent. Frames fed while idle are ignored.

==============================================================================
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

import numpy as np

from exam_scanner.config import get_settings

from .decoder import DecodedBarcode, decode_frame, decode_image_bytes, get_cv2


# Module logger
logger = logging.getLogger(__name__)

SCAN_TIMEOUT_MESSAGE = "Scanning timeout reached"


class ScanTimeoutError(Exception):
    """Raised (through on_error) when a session ends without a detection."""

    def __init__(self, message: str = SCAN_TIMEOUT_MESSAGE) -> None:
        super().__init__(message)


class BarcodeScanner:
    """
    Barcode scan session.

    Example:
        >>> scanner = BarcodeScanner(on_detected=print, on_error=print)
        >>> scanner.start()
        >>> scanner.feed(frame)      # returns the code on first detection
        'MATH2023001'
        >>> scanner.is_scanning
        False
    """

    def __init__(
        self,
        on_detected: Callable[[str], None],
        on_error: Callable[[Exception], None],
        on_start: Optional[Callable[[], None]] = None,
        on_stop: Optional[Callable[[], None]] = None,
        timeout_seconds: float = 30.0,
        decoder: Optional[Callable[[np.ndarray], List[DecodedBarcode]]] = None,
        clock: Callable[[], float] = time.monotonic,
        interval_seconds: float = 0.1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._on_detected = on_detected
        self._on_error = on_error
        self._on_start = on_start
        self._on_stop = on_stop
        self._timeout_seconds = timeout_seconds
        self._decoder = decoder or decode_frame
        self._clock = clock
        self._interval_seconds = interval_seconds
        self._sleep = sleep

        self._scanning = False
        self._started_at: Optional[float] = None
        self._capture = None

    @classmethod
    def from_settings(
        cls,
        on_detected: Callable[[str], None],
        on_error: Callable[[Exception], None],
        **kwargs
    ) -> "BarcodeScanner":
        """Scanner using the configured session timeout and frame interval."""
        settings = get_settings()
        kwargs.setdefault("timeout_seconds", settings.scan_timeout_seconds)
        kwargs.setdefault("interval_seconds", settings.scan_interval_seconds)
        return cls(on_detected=on_detected, on_error=on_error, **kwargs)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_scanning(self) -> bool:
        return self._scanning

    def start(self) -> None:
        """Begin a session and start the timeout clock."""
        if self._scanning:
            return

        self._scanning = True
        self._started_at = self._clock()
        logger.info(f"📷 Scan started (timeout {self._timeout_seconds:g}s)")

        if self._on_start:
            self._on_start()

    def stop(self) -> None:
        """End the session and release the camera, if any."""
        if not self._scanning:
            return

        self._scanning = False
        self._started_at = None
        self._release_capture()
        logger.info("🛑 Scan stopped")

        if self._on_stop:
            self._on_stop()

    def remaining_seconds(self) -> float:
        """Seconds left before the session times out (0 when idle)."""
        if not self._scanning or self._started_at is None:
            return 0.0
        elapsed = self._clock() - self._started_at
        return max(0.0, self._timeout_seconds - elapsed)

    def check_timeout(self) -> bool:
        """
        Stop the session if its timeout has elapsed.

        Returns:
            True if the session timed out now
        """
        if not self._scanning or self.remaining_seconds() > 0:
            return False

        logger.warning(f"⏱️ {SCAN_TIMEOUT_MESSAGE}")
        self.stop()
        self._on_error(ScanTimeoutError())
        return True

    # =========================================================================
    # FRAME PROCESSING
    # =========================================================================

    def feed(self, frame: Optional[np.ndarray]) -> Optional[str]:
        """
        Process one frame.

        Returns:
            The decoded code on the first detection, else None
        """
        if not self._scanning or self.check_timeout():
            return None

        try:
            detections = self._decoder(frame)
        except RuntimeError:
            raise
        except Exception as e:
            logger.error(f"Decode error: {e}")
            return None

        if not detections:
            return None

        code = detections[0].data
        logger.info(f"✓ Detected: {code} ({detections[0].type})")

        self.stop()
        self._on_detected(code)
        return code

    def feed_image_bytes(self, data: bytes) -> Optional[str]:
        """Decode an encoded image and feed it. Unreadable images report an error."""
        if not self._scanning or self.check_timeout():
            return None

        frame = decode_image_bytes(data)
        if frame is None:
            self._on_error(ValueError("Image could not be decoded"))
            return None

        return self.feed(frame)

    def scan_camera(self, camera_index: int = 0) -> Optional[str]:
        """
        Read frames from a camera until detection, timeout or stop.

        Blocks the calling thread; frames are read every interval_seconds.

        Returns:
            The detected code, or None
        """
        cv2 = get_cv2()

        self.start()
        self._capture = cv2.VideoCapture(camera_index)

        if not self._capture.isOpened():
            error = RuntimeError(f"Cannot open camera {camera_index}")
            logger.error(str(error))
            self.stop()
            self._on_error(error)
            return None

        try:
            while self._scanning:
                ret, frame = self._capture.read()
                if not ret:
                    logger.warning("Failed to read frame")
                    if self.check_timeout():
                        return None
                else:
                    code = self.feed(frame)
                    if code is not None:
                        return code

                self._sleep(self._interval_seconds)
        finally:
            self._release_capture()

        return None

    def _release_capture(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.debug("Camera released")
