"""
Face model loading.

The MediaPipe FaceLandmarker is expensive to create, so it is loaded once
per process and shared by every session. Concurrent session starts await
the same in-flight load.
"""
import asyncio
import logging
import os
from typing import Any, Callable, Optional

import cv2
import mediapipe as mp
import numpy as np

from ..config import config
from ..exceptions import ModelLoadFailure

logger = logging.getLogger(__name__)


class MediaPipeFaceModel:
    """
    Thin wrapper over a MediaPipe FaceLandmarker running in VIDEO mode.

    `detect` returns the raw FaceLandmarkerResult; SignalExtractor reads it.
    """

    def __init__(self, landmarker: Any):
        self._landmarker = landmarker

    def preprocess_frame(self, frame: np.ndarray) -> np.ndarray:
        """
        Convert a BGR frame (OpenCV default) to RGB (MediaPipe requirement).

        Args:
            frame: Input frame in BGR format

        Returns:
            np.ndarray: Frame in RGB format
        """
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def detect(self, frame: np.ndarray, timestamp: float) -> Any:
        """
        Run face landmark and blendshape detection on one frame.

        Args:
            frame: BGR frame
            timestamp: Frame timestamp in milliseconds (must increase)

        Returns:
            FaceLandmarkerResult with face_landmarks and face_blendshapes
        """
        rgb_frame = self.preprocess_frame(frame)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)
        return self._landmarker.detect_for_video(mp_image, int(timestamp))

    def close(self) -> None:
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None


def create_face_model(model_path: Optional[str] = None) -> MediaPipeFaceModel:
    """
    Build the MediaPipe FaceLandmarker from a .task model file.

    Configuration:
    - running_mode: VIDEO (timestamps must increase per call)
    - num_faces: 1 (only track a single face for security)
    - output_face_blendshapes: True (the challenge rules read blendshapes)

    Raises:
        ModelLoadFailure: If the model file is missing or cannot be loaded
    """
    model_path = os.path.expanduser(model_path or config.MEDIAPIPE_MODEL_PATH)
    if not os.path.exists(model_path):
        raise ModelLoadFailure(
            f"MediaPipe model not found at {model_path}. "
            "Download it using: python download_mediapipe_model.py"
        )

    try:
        base_options = mp.tasks.BaseOptions(model_asset_path=model_path)
        options = mp.tasks.vision.FaceLandmarkerOptions(
            base_options=base_options,
            running_mode=mp.tasks.vision.RunningMode.VIDEO,
            num_faces=1,
            min_face_detection_confidence=config.MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
            min_face_presence_confidence=config.MEDIAPIPE_MIN_DETECTION_CONFIDENCE,
            output_face_blendshapes=True,
            output_facial_transformation_matrixes=False
        )
        landmarker = mp.tasks.vision.FaceLandmarker.create_from_options(options)
    except Exception as e:
        raise ModelLoadFailure(f"Failed to initialize MediaPipe FaceLandmarker: {e}") from e

    logger.info(f"MediaPipe Face Landmarker loaded from {model_path}")
    return MediaPipeFaceModel(landmarker)


class ModelLoader:
    """
    Load-once holder for the face model.

    The first `get()` starts the load in a worker thread; callers arriving
    while it is in flight await the same task and see the same outcome.
    A failed load is forgotten so a later session can retry.
    """

    _default: Optional["ModelLoader"] = None

    def __init__(self, factory: Optional[Callable[[], Any]] = None):
        self._factory = factory or create_face_model
        self._model = None
        self._loading: Optional[asyncio.Task] = None

    @classmethod
    def default(cls) -> "ModelLoader":
        """Process-wide loader backed by the MediaPipe model"""
        if cls._default is None:
            cls._default = cls()
        return cls._default

    @property
    def model(self) -> Optional[Any]:
        return self._model

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    async def get(self) -> Any:
        """
        Return the loaded model, loading it on first use.

        Raises:
            ModelLoadFailure: If loading fails
        """
        if self._model is not None:
            return self._model

        if self._loading is None:
            self._loading = asyncio.get_running_loop().create_task(self._load())

        # Shield so one cancelled waiter does not cancel the shared load
        return await asyncio.shield(self._loading)

    async def _load(self) -> Any:
        try:
            model = await asyncio.to_thread(self._factory)
        except ModelLoadFailure as e:
            self._loading = None
            logger.error(f"Failed to load face model: {e}")
            raise
        except Exception as e:
            self._loading = None
            logger.error(f"Failed to load face model: {e}")
            raise ModelLoadFailure(f"Failed to load face model: {e}") from e

        self._model = model
        return model
