"""
Camera frame sources consumed by the liveness session.

A source only needs "give me the current frame" semantics plus a still
capture for the final image. Timestamps are milliseconds and increase
per source.
"""
import base64
import logging
import time
from typing import Optional, Protocol

import cv2
import numpy as np

from ..models.data_models import Frame

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def get_frame(self) -> Optional[Frame]:
        ...

    def capture_still(self) -> Optional[str]:
        ...


def encode_still(image: np.ndarray, quality: int = 92) -> Optional[str]:
    """
    Encode a BGR frame as a JPEG data URL.

    Args:
        image: Frame in BGR format (OpenCV default)
        quality: JPEG quality (0-100)

    Returns:
        "data:image/jpeg;base64,..." string, or None if encoding fails
    """
    if image is None or image.size == 0:
        return None

    ok, buffer = cv2.imencode('.jpg', image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        logger.error("Failed to encode still: cv2.imencode returned False")
        return None

    encoded = base64.b64encode(buffer).decode('utf-8')
    return f"data:image/jpeg;base64,{encoded}"


def decode_frame(frame_data: str) -> Optional[np.ndarray]:
    """
    Decode a base64-encoded image (optionally a data URL) to a BGR array.

    Returns:
        Decoded frame, or None if decoding fails
    """
    try:
        # Remove data URL prefix if present (e.g., "data:image/jpeg;base64,")
        if "," in frame_data:
            frame_data = frame_data.split(",", 1)[1]

        img_bytes = base64.b64decode(frame_data)
        nparr = np.frombuffer(img_bytes, np.uint8)
        frame = cv2.imdecode(nparr, cv2.IMREAD_COLOR)

        if frame is None:
            logger.error("Failed to decode frame: cv2.imdecode returned None")
            return None

        return frame

    except Exception as e:
        logger.error(f"Error decoding frame: {e}")
        return None


class VideoCaptureSource:
    """Local camera read through OpenCV"""

    def __init__(self, device: int = 0, capture=None):
        self.device = device
        self._capture = capture if capture is not None else cv2.VideoCapture(device)
        self._last_frame: Optional[Frame] = None
        self._last_timestamp = 0.0

    @property
    def is_open(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def get_frame(self) -> Optional[Frame]:
        if not self.is_open:
            return None

        ok, image = self._capture.read()
        if not ok or image is None:
            logger.warning(f"Camera {self.device} returned no frame")
            return None

        timestamp = time.monotonic() * 1000.0
        # monotonic() can repeat at coarse resolutions
        if timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + 0.001
        self._last_timestamp = timestamp

        self._last_frame = Frame(image=image, timestamp=timestamp)
        return self._last_frame

    def capture_still(self) -> Optional[str]:
        frame = self.get_frame() or self._last_frame
        if frame is None:
            return None
        return encode_still(frame.image)

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None


class LatestFrameSource:
    """
    Holds the most recent frame pushed by a transport (e.g. a WebSocket).

    Frames older than the newest accepted one are dropped on arrival.
    """

    def __init__(self):
        self._frame: Optional[Frame] = None

    def push(self, image: np.ndarray, timestamp: float) -> bool:
        """
        Offer a new frame.

        Returns:
            bool: True if the frame became the current frame
        """
        if image is None:
            return False
        if self._frame is not None and timestamp <= self._frame.timestamp:
            logger.debug(f"Dropped stale frame at {timestamp} (latest {self._frame.timestamp})")
            return False
        self._frame = Frame(image=image, timestamp=float(timestamp))
        return True

    def get_frame(self) -> Optional[Frame]:
        return self._frame

    def capture_still(self) -> Optional[str]:
        if self._frame is None:
            return None
        return encode_still(self._frame.image)
