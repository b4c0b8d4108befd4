"""
==============================================================================
Scanner Tests
==============================================================================

Tests for the BarcodeScanner session lifecycle.

The decoder and clock are injected, so no camera or zbar is needed.

==============================================================================
"""

import pytest

from exam_scanner.scanner import BarcodeScanner, DecodedBarcode, ScanTimeoutError


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Recorder:
    """Collects scanner callbacks."""

    def __init__(self):
        self.detected = []
        self.errors = []
        self.starts = 0
        self.stops = 0

    def make_scanner(self, decoder, clock, timeout_seconds=30.0):
        return BarcodeScanner(
            on_detected=self.detected.append,
            on_error=self.errors.append,
            on_start=self._started,
            on_stop=self._stopped,
            timeout_seconds=timeout_seconds,
            decoder=decoder,
            clock=clock,
        )

    def _started(self):
        self.starts += 1

    def _stopped(self):
        self.stops += 1


def _detections(*codes):
    return [DecodedBarcode(code, "CODE128", {"x": 0, "y": 0, "width": 1, "height": 1}) for code in codes]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recorder():
    return Recorder()


class TestBarcodeScanner:
    """Tests for the scan session state machine."""

    def test_start_and_stop_are_idempotent(self, recorder, clock):
        """Test repeated start/stop fire callbacks once."""
        scanner = recorder.make_scanner(lambda frame: [], clock)

        scanner.start()
        scanner.start()
        assert scanner.is_scanning
        assert recorder.starts == 1

        scanner.stop()
        scanner.stop()
        assert not scanner.is_scanning
        assert recorder.stops == 1

    def test_frames_ignored_while_idle(self, recorder, clock):
        """Test feeding an idle scanner does nothing."""
        calls = []
        scanner = recorder.make_scanner(lambda frame: calls.append(frame) or _detections("X1"), clock)

        assert scanner.feed("frame") is None
        assert calls == []
        assert recorder.detected == []

    def test_stops_on_first_detection(self, recorder, clock):
        """Test the first decoded code ends the session."""
        frames = iter([[], _detections("MATH2023001", "PHYS2023001"), _detections("CS2023001")])
        scanner = recorder.make_scanner(lambda frame: next(frames), clock)
        scanner.start()

        assert scanner.feed("f1") is None
        assert scanner.feed("f2") == "MATH2023001"
        assert scanner.feed("f3") is None

        assert recorder.detected == ["MATH2023001"]
        assert not scanner.is_scanning
        assert recorder.stops == 1

    def test_timeout(self, recorder, clock):
        """Test a session without detection times out."""
        scanner = recorder.make_scanner(lambda frame: _detections("LATE"), clock, timeout_seconds=30)
        scanner.start()

        clock.advance(29.9)
        assert scanner.remaining_seconds() == pytest.approx(0.1)
        assert scanner.check_timeout() is False

        clock.advance(0.1)
        assert scanner.feed("frame") is None

        assert recorder.detected == []
        assert len(recorder.errors) == 1
        assert isinstance(recorder.errors[0], ScanTimeoutError)
        assert str(recorder.errors[0]) == "Scanning timeout reached"
        assert not scanner.is_scanning

    def test_restart_resets_timeout(self, recorder, clock):
        """Test a new session gets a fresh timeout."""
        scanner = recorder.make_scanner(lambda frame: [], clock, timeout_seconds=5)
        scanner.start()
        clock.advance(4)
        scanner.stop()

        scanner.start()
        clock.advance(4)
        assert scanner.check_timeout() is False
        assert scanner.remaining_seconds() == pytest.approx(1)

    def test_decoder_error_is_not_fatal(self, recorder, clock):
        """Test a frame that fails to decode is skipped."""
        results = iter([ValueError("bad frame"), _detections("OK123")])

        def decoder(frame):
            result = next(results)
            if isinstance(result, Exception):
                raise result
            return result

        scanner = recorder.make_scanner(decoder, clock)
        scanner.start()

        assert scanner.feed("broken") is None
        assert scanner.is_scanning
        assert scanner.feed("good") == "OK123"

    def test_unreadable_image_bytes(self, recorder, clock, monkeypatch):
        """Test an image that cannot be decoded reports an error and keeps scanning."""
        from exam_scanner.scanner import core

        monkeypatch.setattr(core, "decode_image_bytes", lambda data: None)
        scanner = recorder.make_scanner(lambda frame: _detections("X"), clock)
        scanner.start()

        assert scanner.feed_image_bytes(b"not an image") is None
        assert isinstance(recorder.errors[0], ValueError)
        assert scanner.is_scanning

    def test_camera_scan(self, recorder, clock, monkeypatch):
        """Test the camera loop reads until detection and releases the camera."""
        from exam_scanner.scanner import core

        class FakeCapture:
            released = False

            def __init__(self, index):
                self.frames = iter([(False, None), (True, "f1"), (True, "f2")])

            def isOpened(self):
                return True

            def read(self):
                return next(self.frames)

            def release(self):
                FakeCapture.released = True

        class FakeCv2:
            VideoCapture = FakeCapture

        monkeypatch.setattr(core, "get_cv2", lambda: FakeCv2)
        decoded = iter([[], _detections("CAM2023001")])
        scanner = BarcodeScanner(
            on_detected=recorder.detected.append,
            on_error=recorder.errors.append,
            decoder=lambda frame: next(decoded),
            clock=clock,
            sleep=lambda seconds: clock.advance(seconds),
        )

        assert scanner.scan_camera(0) == "CAM2023001"
        assert recorder.detected == ["CAM2023001"]
        assert FakeCapture.released is True
        assert not scanner.is_scanning

    def test_from_settings(self, recorder, monkeypatch):
        """Test the configured timeout and frame interval are applied."""
        from exam_scanner.config import get_settings

        monkeypatch.setattr(get_settings(), "scan_timeout_seconds", 12.5)
        monkeypatch.setattr(get_settings(), "scan_interval_ms", 250)

        scanner = BarcodeScanner.from_settings(recorder.detected.append, recorder.errors.append)
        assert scanner._timeout_seconds == 12.5
        assert scanner._interval_seconds == 0.25

        scanner = BarcodeScanner.from_settings(
            recorder.detected.append, recorder.errors.append, timeout_seconds=3
        )
        assert scanner._timeout_seconds == 3

    def test_camera_unavailable(self, recorder, clock, monkeypatch):
        """Test a camera that cannot be opened reports an error."""
        from exam_scanner.scanner import core

        class ClosedCapture:
            def __init__(self, index):
                pass

            def isOpened(self):
                return False

            def release(self):
                pass

        class FakeCv2:
            VideoCapture = ClosedCapture

        monkeypatch.setattr(core, "get_cv2", lambda: FakeCv2)
        scanner = recorder.make_scanner(lambda frame: [], clock)

        assert scanner.scan_camera(3) is None
        assert "Cannot open camera 3" in str(recorder.errors[0])
        assert not scanner.is_scanning
