"""
Signal Extractor: turns raw face-model output into blendshape scores and head pose
"""
import logging
from typing import Any, Sequence, Tuple

import numpy as np

from ..exceptions import MissingSignals, NoFaceDetected
from ..models.data_models import BlendshapeScores, HeadPose

logger = logging.getLogger(__name__)


class SignalExtractor:
    """
    Stateless adapter over the face landmarker result.

    Reads the first detected face only. Landmark indices follow the
    MediaPipe FaceMesh topology.
    """

    # Key landmark indices (MediaPipe FaceMesh topology)
    NOSE_TIP = 1
    LEFT_EYE_OUTER = 33
    RIGHT_EYE_OUTER = 263

    # Amplification tuned for normalized landmark coordinates
    YAW_GAIN = 3.0
    PITCH_GAIN = 2.0

    def extract(self, frame_result: Any) -> Tuple[BlendshapeScores, HeadPose]:
        """
        Extract per-frame signals from a face detection result.

        Args:
            frame_result: Object with `face_landmarks` and `face_blendshapes`
                          lists (MediaPipe FaceLandmarkerResult or equivalent)

        Returns:
            Tuple of (BlendshapeScores, HeadPose)

        Raises:
            NoFaceDetected: If the model reports zero faces
            MissingSignals: If a face was found but blendshapes are absent
        """
        face_landmarks = getattr(frame_result, "face_landmarks", None)
        if not face_landmarks:
            raise NoFaceDetected("No face detected in frame")

        face_blendshapes = getattr(frame_result, "face_blendshapes", None)
        if not face_blendshapes or not face_blendshapes[0]:
            raise MissingSignals(
                "Face detected but blendshapes are missing; "
                "enable output_face_blendshapes on the landmarker"
            )

        scores = BlendshapeScores.from_categories(face_blendshapes[0])
        head_pose = self.extract_head_pose(face_landmarks[0])
        return scores, head_pose

    def extract_head_pose(self, landmarks: Sequence[Any]) -> HeadPose:
        """
        Estimate yaw and pitch from nose tip and outer eye corners.

        yaw   = clamp((eye_center_x - nose_x) * 3)
        pitch = clamp((nose_y - eye_center_y) * 2)

        Args:
            landmarks: Face landmarks with x, y attributes

        Returns:
            HeadPose with both axes clamped to [-1, 1]

        Raises:
            MissingSignals: If the landmark list is too short
        """
        required = max(self.NOSE_TIP, self.LEFT_EYE_OUTER, self.RIGHT_EYE_OUTER) + 1
        if len(landmarks) < required:
            raise MissingSignals(
                f"Expected at least {required} landmarks, got {len(landmarks)}"
            )

        nose_tip = landmarks[self.NOSE_TIP]
        left_eye = landmarks[self.LEFT_EYE_OUTER]
        right_eye = landmarks[self.RIGHT_EYE_OUTER]

        face_center_x = (left_eye.x + right_eye.x) / 2
        yaw = (face_center_x - nose_tip.x) * self.YAW_GAIN
        pitch = (nose_tip.y - (left_eye.y + right_eye.y) / 2) * self.PITCH_GAIN

        return HeadPose(
            yaw=float(np.clip(yaw, -1.0, 1.0)),
            pitch=float(np.clip(pitch, -1.0, 1.0))
        )
