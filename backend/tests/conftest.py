"""
Shared fixtures and fakes for liveness engine tests.

Fakes stand in for the camera and the MediaPipe model so sessions can run
deterministically without a device or model file.
"""
import asyncio
import itertools
from typing import Callable, List, Optional

import numpy as np
import pytest

from liveness_engine.models.data_models import (
    BlendshapeCategory,
    BlendshapeScores,
    ChallengeType,
    FaceDetectionResult,
    Frame,
    Landmark,
    LivenessConfig,
)
from liveness_engine.services.model_loader import ModelLoader

NOSE_TIP, LEFT_EYE, RIGHT_EYE = 1, 33, 263

STILL_IMAGE = "data:image/jpeg;base64,/9j/AAAA"

# Blendshape values that satisfy each single-frame challenge
QUALIFYING_BLENDSHAPES = {
    ChallengeType.SMILE: {"mouthSmileLeft": 0.9, "mouthSmileRight": 0.9},
    ChallengeType.OPEN_MOUTH: {"jawOpen": 0.9},
    ChallengeType.RAISE_EYEBROWS: {"browInnerUp": 0.9, "browOuterUpLeft": 0.9, "browOuterUpRight": 0.9},
    ChallengeType.SQUINT: {"eyeSquintLeft": 0.9, "eyeSquintRight": 0.9},
    ChallengeType.LOOK_UP: {"eyeLookUpLeft": 0.9, "eyeLookUpRight": 0.9},
    ChallengeType.LOOK_DOWN: {"eyeLookDownLeft": 0.9, "eyeLookDownRight": 0.9},
    ChallengeType.PURSE_LIPS: {"mouthPucker": 0.9},
    ChallengeType.FROWN: {"mouthFrownLeft": 0.9, "mouthFrownRight": 0.9},
}

STATELESS_TYPES = list(QUALIFYING_BLENDSHAPES)


def make_landmarks(yaw_offset: float = 0.0, pitch_offset: float = 0.0, count: int = 468) -> List[Landmark]:
    """
    Build a landmark list with eyes level at y=0.4 and the nose under their midpoint.

    yaw_offset shifts the nose left (negative yaw) or right (positive yaw) in
    the units the head-pose estimate reports before amplification.
    """
    landmarks = [Landmark(0.5, 0.5, 0.0) for _ in range(count)]
    if count > RIGHT_EYE:
        landmarks[LEFT_EYE] = Landmark(0.4, 0.4, 0.0)
        landmarks[RIGHT_EYE] = Landmark(0.6, 0.4, 0.0)
        landmarks[NOSE_TIP] = Landmark(0.5 - yaw_offset, 0.4 + pitch_offset, 0.0)
    return landmarks


def make_result(landmarks: Optional[List[Landmark]] = None, **blendshapes) -> FaceDetectionResult:
    """One-face detection result with the given blendshape scores"""
    categories = [BlendshapeCategory(name, score) for name, score in blendshapes.items()]
    # The model always reports a neutral entry even when nothing else fires
    categories.append(BlendshapeCategory("_neutral", 1.0))
    return FaceDetectionResult(
        face_landmarks=[landmarks if landmarks is not None else make_landmarks()],
        face_blendshapes=[categories]
    )


def no_face_result() -> FaceDetectionResult:
    return FaceDetectionResult()


def scores(**values) -> BlendshapeScores:
    return BlendshapeScores(**values)


class FakeFrameSource:
    """Camera double producing frames 20ms apart, or a scripted timestamp list"""

    def __init__(self, timestamps: Optional[List[float]] = None, still: Optional[str] = STILL_IMAGE):
        if timestamps is None:
            self._timestamps = itertools.count(start=20, step=20)
        else:
            self._timestamps = iter(timestamps)
        self._image = np.zeros((4, 4, 3), dtype=np.uint8)
        self.still = still
        self.capture_calls = 0
        self.frames_served = 0

    def get_frame(self) -> Optional[Frame]:
        timestamp = next(self._timestamps, None)
        if timestamp is None:
            return None
        self.frames_served += 1
        return Frame(image=self._image, timestamp=float(timestamp))

    def capture_still(self) -> Optional[str]:
        self.capture_calls += 1
        return self.still


class FakeFaceModel:
    """Face model double; `responder(timestamp)` decides each detection result"""

    def __init__(self, responder: Optional[Callable[[float], FaceDetectionResult]] = None):
        self.responder = responder or (lambda timestamp: make_result())
        self.calls: List[float] = []

    def detect(self, image, timestamp):
        self.calls.append(timestamp)
        return self.responder(timestamp)


def fast_config(**overrides) -> LivenessConfig:
    """Session config with short timers for tests"""
    values = dict(
        detection_interval_ms=1,
        timeout_ms=2000,
        capture_delay_ms=0,
        challenge_count=2,
    )
    values.update(overrides)
    return LivenessConfig(**values)


async def collect(updates, timeout: float = 5.0):
    """Drain a session update stream into a list"""
    async def _drain():
        return [state async for state in updates]
    return await asyncio.wait_for(_drain(), timeout)


@pytest.fixture
def config():
    return LivenessConfig()


@pytest.fixture
def frame_source():
    return FakeFrameSource()


@pytest.fixture
def face_model():
    return FakeFaceModel()


@pytest.fixture
def model_loader(face_model):
    return ModelLoader(factory=lambda: face_model)
