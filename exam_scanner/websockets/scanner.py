"""
==============================================================================
Scanner WebSocket Module
==============================================================================

Camera scanning session over a WebSocket connection.

Protocol:
---------
1. Client connects with JWT token as query parameter
2. Server sends {"type": "ready", "timeout": <seconds>}
3. Client sends {"type": "frame", "frame": <base64 image>},
   {"type": "manual", "code": <code>} or {"type": "stop"}
4. Server replies once and closes:
   - {"type": "result", ...}          first detection, scan logged
   - {"type": "error", "code": "SCAN_TIMEOUT", ...}
   - {"type": "stopped"}

Frames that cannot be decoded get an INVALID_IMAGE error, and messages
that are not JSON objects a VALIDATION_ERROR; the session continues.

==============================================================================
"""

import asyncio
import base64
import binascii
import logging
from typing import List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends, Query
from sqlalchemy.orm import Session

from exam_scanner.config import get_settings
from exam_scanner.core.dependencies import get_current_user_ws
from exam_scanner.core.exceptions import AppException
from exam_scanner.db.database import get_db
from exam_scanner.db.models import User
from exam_scanner.scanner import BarcodeScanner, ScanTimeoutError
from exam_scanner.schemas.scan import ScanResultResponse
from exam_scanner.services.scan_service import ScanService


# Module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ScannerWebSocketHandler:
    """
    Handler for one scanning session.

    The session ends on the first detection, a stop message or the
    scan timeout, whichever comes first.
    """

    def __init__(self, websocket: WebSocket, db: Session):
        self._websocket = websocket
        self._db = db
        self._settings = get_settings()
        self._user: Optional[User] = None
        self._detected: Optional[str] = None
        self._errors: List[Exception] = []
        self._scanner = BarcodeScanner.from_settings(
            on_detected=self._on_detected,
            on_error=self._errors.append,
        )

    def _on_detected(self, code: str) -> None:
        self._detected = code

    async def authenticate(self, token: Optional[str]) -> bool:
        """Authenticate user from token."""
        try:
            self._user = get_current_user_ws(token, self._db)
            return True
        except AppException as e:
            logger.warning(f"WebSocket auth failed: {e.code}")
            await self.send_error(e.message, e.code)
            return False

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        """Send error message to client."""
        await self._websocket.send_json({
            "type": "error",
            "code": code,
            "message": message
        })

    async def send_result(self, code: str, device_id: Optional[str] = None) -> None:
        """Log the scan and send its outcome."""
        outcome = ScanService(self._db).process_scan(
            code, self._user, device_id=device_id
        )
        response = ScanResultResponse.from_outcome(outcome)
        await self._websocket.send_json({
            "type": "result",
            **response.model_dump(mode="json"),
        })

    async def handle_frame(self, data: dict) -> bool:
        """
        Feed one base64 frame. Returns True when the session is over.
        """
        try:
            image = base64.b64decode(data.get("frame") or "", validate=True)
        except (binascii.Error, ValueError):
            await self.send_error("Frame is not valid base64", "INVALID_IMAGE")
            return False

        try:
            code = self._scanner.feed_image_bytes(image)
        except RuntimeError as e:
            logger.error(f"Decoder unavailable: {e}")
            self._scanner.stop()
            await self.send_error(str(e), "DECODER_UNAVAILABLE")
            return True

        if code is not None:
            await self.send_result(code, data.get("device_id"))
            return True

        return await self.flush_errors()

    async def handle_manual(self, data: dict) -> bool:
        """Process a typed code. Returns True when the session is over."""
        code = data.get("code")
        if code is not None and not isinstance(code, str):
            await self.send_error("Barcode must be a string", "VALIDATION_ERROR")
            return False

        try:
            await self.send_result(code or "", data.get("device_id"))
        except AppException as e:
            await self.send_error(e.message, e.code)
            return False

        self._scanner.stop()
        return True

    async def receive_message(self) -> Optional[dict]:
        """
        Next client message, or None if it was not a JSON object.

        Raises:
            asyncio.TimeoutError: when the scan timeout passes first
        """
        try:
            data = await asyncio.wait_for(
                self._websocket.receive_json(),
                timeout=self._scanner.remaining_seconds()
            )
        except ValueError:
            await self.send_error("Message is not valid JSON", "VALIDATION_ERROR")
            return None

        if not isinstance(data, dict):
            await self.send_error("Message must be a JSON object", "VALIDATION_ERROR")
            return None
        return data

    async def flush_errors(self) -> bool:
        """
        Report errors raised through the scanner callback.

        Returns:
            True if the session timed out
        """
        timed_out = False
        while self._errors:
            error = self._errors.pop(0)
            if isinstance(error, ScanTimeoutError):
                timed_out = True
                await self.send_error(str(error), "SCAN_TIMEOUT")
            else:
                await self.send_error(str(error), "INVALID_IMAGE")
        return timed_out

    async def run(self, token: Optional[str]) -> None:
        """Main handler loop."""
        await self._websocket.accept()
        logger.info("📱 Scanner WebSocket connected")

        if not await self.authenticate(token):
            await self._websocket.close(code=1008)
            return

        logger.info(f"✅ User authenticated: {self._user.username}")

        try:
            self._scanner.start()
            await self._websocket.send_json({
                "type": "ready",
                "timeout": self._settings.scan_timeout_seconds,
                "user": self._user.username
            })

            while self._scanner.is_scanning:
                try:
                    data = await self.receive_message()
                except asyncio.TimeoutError:
                    self._scanner.check_timeout()
                    await self.flush_errors()
                    break

                if data is None:
                    continue

                message_type = data.get("type")

                if message_type == "frame":
                    if await self.handle_frame(data):
                        break

                elif message_type == "manual":
                    if await self.handle_manual(data):
                        break

                elif message_type == "stop":
                    logger.info("🛑 Client requested stop")
                    self._scanner.stop()
                    await self._websocket.send_json({"type": "stopped"})
                    break

                else:
                    await self.send_error(
                        f"Unknown message type: {message_type}", "VALIDATION_ERROR"
                    )

            await self._websocket.close()

        except WebSocketDisconnect:
            logger.info("📱 Client disconnected")
        except Exception as e:
            logger.exception(f"WebSocket error: {e}")
            await self.send_error("Internal server error", "INTERNAL_ERROR")
            await self._websocket.close(code=1011)
        finally:
            self._scanner.stop()
            logger.info("✅ Scanner WebSocket closed")


@router.websocket("/ws/scan")
async def websocket_scan(
    websocket: WebSocket,
    token: str = Query(None),
    db: Session = Depends(get_db)
):
    """Barcode scanning session via WebSocket."""
    handler = ScannerWebSocketHandler(websocket, db)
    await handler.run(token)
