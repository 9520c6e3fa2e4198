"""
WebSocket handler for real-time liveness sessions.

This module provides the WebSocketHandler class that decodes frames sent by
the browser and streams SessionState updates back to it.
"""
from fastapi import WebSocket, WebSocketDisconnect
from typing import Any, Dict, Optional
import logging
import json

from ..models.data_models import (
    FeedbackType,
    SessionState,
    VerificationFeedback,
)
from .frame_source import LatestFrameSource, decode_frame

logger = logging.getLogger(__name__)


class WebSocketHandler:
    """
    Manages WebSocket communication for a liveness session.

    Client -> server messages:
      {"type": "start", "config": {...}}                       (optional, first)
      {"type": "video_frame", "frame": "<base64>", "timestamp": ms}
      {"type": "stop"}

    Server -> client messages:
      {"type": "session_update", "message": str, "data": SessionState}
      {"type": "error", "message": str, "data": {}}
    """

    async def handle_connection(self, websocket: WebSocket) -> None:
        """Accept the WebSocket connection."""
        await websocket.accept()
        logger.info("WebSocket connection established for liveness session")

    async def receive_message(self, websocket: WebSocket) -> Optional[Dict[str, Any]]:
        """
        Receive and parse one JSON message from the client.

        Returns:
            Parsed message dict, or None if the message is not valid JSON
            or not an object

        Raises:
            WebSocketDisconnect: If the client disconnected
        """
        try:
            data = await websocket.receive_text()
            message = json.loads(data)
        except WebSocketDisconnect:
            logger.info("WebSocket disconnected while receiving message")
            raise
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON received: {e}")
            return None

        if not isinstance(message, dict):
            logger.error(f"Ignoring non-object message: {type(message).__name__}")
            return None
        return message

    def accept_video_frame(self, message: Dict[str, Any], frame_source: LatestFrameSource) -> bool:
        """
        Decode a video_frame message into the session's frame source.

        Returns:
            bool: True if the frame was decoded and accepted as the latest frame
        """
        if message.get("type") != "video_frame":
            return False

        frame_data = message.get("frame")
        timestamp = message.get("timestamp")
        if not frame_data or timestamp is None:
            logger.warning("video_frame message without frame or timestamp")
            return False

        frame = decode_frame(frame_data)
        if frame is None:
            return False

        try:
            return frame_source.push(frame, float(timestamp))
        except (TypeError, ValueError):
            logger.warning(f"Invalid frame timestamp: {timestamp!r}")
            return False

    async def send_state(self, websocket: WebSocket, state: SessionState) -> None:
        """Send a session update to the client."""
        await self.send_feedback(websocket, VerificationFeedback.from_state(state))

    async def send_error(self, websocket: WebSocket, message: str) -> None:
        await self.send_feedback(
            websocket,
            VerificationFeedback(type=FeedbackType.ERROR, message=message)
        )

    async def send_feedback(
        self,
        websocket: WebSocket,
        feedback: VerificationFeedback
    ) -> None:
        """
        Send feedback to the client.

        Raises:
            Exception: Propagates send failures after logging them
        """
        try:
            feedback_dict = {
                "type": feedback.type.value,
                "message": feedback.message,
                "data": feedback.data
            }
            await websocket.send_json(feedback_dict)
            logger.debug(f"Sent feedback: {feedback.type.value}")

        except Exception as e:
            logger.error(f"Error sending feedback: {e}")
            raise

    async def close_connection(
        self,
        websocket: WebSocket,
        code: int = 1000,
        reason: str = "Normal closure"
    ) -> None:
        """
        Close the WebSocket connection gracefully.

        Args:
            websocket: FastAPI WebSocket connection object
            code: WebSocket close code (default: 1000 for normal closure)
            reason: Human-readable reason for closure
        """
        try:
            await websocket.close(code=code, reason=reason)
            logger.info(f"WebSocket closed: {reason} (code: {code})")
        except Exception as e:
            logger.error(f"Error closing WebSocket: {e}")
