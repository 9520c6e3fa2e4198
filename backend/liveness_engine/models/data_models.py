"""
Data models for the liveness challenge engine
"""
import dataclasses
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import numpy as np

from .schemas import SessionConfigRequest


class ChallengeType(str, Enum):
    """Closed catalog of facial gestures a session may request"""
    BLINK = "blink"
    TURN_LEFT = "turnLeft"
    TURN_RIGHT = "turnRight"
    SMILE = "smile"
    OPEN_MOUTH = "openMouth"
    RAISE_EYEBROWS = "raiseEyebrows"
    SQUINT = "squint"
    LOOK_UP = "lookUp"
    LOOK_DOWN = "lookDown"
    WINK_LEFT = "winkLeft"
    WINK_RIGHT = "winkRight"
    PURSE_LIPS = "purseLips"
    FROWN = "frown"


class SessionStatus(str, Enum):
    """Lifecycle status of a liveness session"""
    IDLE = "idle"
    LOADING = "loading"
    POSITIONING = "positioning"
    CHALLENGE = "challenge"
    SUCCESS = "success"
    TIMEOUT = "timeout"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.SUCCESS, SessionStatus.TIMEOUT, SessionStatus.ERROR)


class WinkSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    NONE = "none"


# User-facing copy for each status; during a challenge the instruction is shown instead
STATUS_MESSAGES = {
    SessionStatus.IDLE: "Preparing camera...",
    SessionStatus.LOADING: "Loading face detection...",
    SessionStatus.POSITIONING: "Position your face in the frame",
    SessionStatus.CHALLENGE: "Follow the instruction",
    SessionStatus.SUCCESS: "Verification successful!",
    SessionStatus.TIMEOUT: "Verification timed out. Please try again.",
    SessionStatus.ERROR: "An error occurred. Please try again.",
}


@dataclass
class Challenge:
    """One requested gesture; `completed` is only flipped by the session"""
    type: ChallengeType
    instruction: str
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "instruction": self.instruction,
            "completed": self.completed,
        }


@dataclass(frozen=True)
class BlendshapeScores:
    """
    Per-frame blendshape intensities (0-1) consumed by the challenge rules.

    Field names match the MediaPipe category names so a result can be
    mapped by name. Keys missing from the model output score 0.0.
    """
    eyeBlinkLeft: float = 0.0
    eyeBlinkRight: float = 0.0
    mouthSmileLeft: float = 0.0
    mouthSmileRight: float = 0.0
    jawOpen: float = 0.0
    browInnerUp: float = 0.0
    browOuterUpLeft: float = 0.0
    browOuterUpRight: float = 0.0
    eyeSquintLeft: float = 0.0
    eyeSquintRight: float = 0.0
    eyeLookUpLeft: float = 0.0
    eyeLookUpRight: float = 0.0
    eyeLookDownLeft: float = 0.0
    eyeLookDownRight: float = 0.0
    mouthPucker: float = 0.0
    mouthFrownLeft: float = 0.0
    mouthFrownRight: float = 0.0
    browDownLeft: float = 0.0
    browDownRight: float = 0.0

    @classmethod
    def from_categories(cls, categories: Iterable[Any]) -> "BlendshapeScores":
        """
        Build scores from MediaPipe-style categories.

        Args:
            categories: Objects with `category_name` and `score` attributes,
                        or (name, score) pairs

        Returns:
            BlendshapeScores with unknown names ignored
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for category in categories:
            if isinstance(category, tuple):
                name, score = category
            else:
                name, score = category.category_name, category.score
            if name in known:
                values[name] = float(score)
        return cls(**values)

    @property
    def blink(self) -> float:
        return (self.eyeBlinkLeft + self.eyeBlinkRight) / 2.0

    @property
    def smile(self) -> float:
        return (self.mouthSmileLeft + self.mouthSmileRight) / 2.0


@dataclass(frozen=True)
class HeadPose:
    """Normalized head rotation, both axes in [-1, 1]"""
    yaw: float = 0.0
    pitch: float = 0.0


@dataclass(frozen=True)
class ChallengeState:
    """
    Evaluation memory for the active challenge.

    Only the stateful gestures (blink, turns, winks) use these fields.
    Timestamps are milliseconds on the frame clock.
    """
    eyes_closed: bool = False
    eyes_closed_time: Optional[float] = None
    turned_left: bool = False
    turned_right: bool = False
    winking_side: WinkSide = WinkSide.NONE
    wink_start_time: Optional[float] = None

    def replace(self, **changes) -> "ChallengeState":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class LivenessConfig:
    """Immutable per-session parameters"""
    # Blink
    blink_threshold: float = 0.5
    blink_recovery_threshold: float = 0.3
    min_blink_ms: float = 50
    max_blink_ms: float = 500

    # Head turns
    head_turn_threshold: float = 0.15
    head_center_threshold: float = 0.05

    # Expressions
    smile_threshold: float = 0.4
    jaw_open_threshold: float = 0.3
    brow_raise_threshold: float = 0.35
    squint_threshold: float = 0.4
    eye_look_threshold: float = 0.4
    purse_lips_threshold: float = 0.4
    frown_threshold: float = 0.3

    # Winks
    wink_threshold: float = 0.5
    wink_open_eye_threshold: float = 0.3
    wink_hold_ms: float = 200

    # Session
    detection_interval_ms: float = 50
    timeout_ms: float = 30000
    challenge_count: int = 3
    capture_delay_ms: float = 1000
    max_consecutive_detection_errors: int = 5

    def with_overrides(self, **overrides) -> "LivenessConfig":
        """
        Return a copy with some fields replaced.

        Overrides are validated by SessionConfigRequest, so numeric strings
        are coerced and out-of-range values are refused.

        Raises:
            ValueError: If an override names an unknown field, has the wrong
                        type or leaves the blink window inconsistent
        """
        request = SessionConfigRequest.model_validate(overrides)
        updated = dataclasses.replace(self, **request.overrides())
        updated._check_consistency()
        return updated

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], base: Optional["LivenessConfig"] = None) -> "LivenessConfig":
        """Build a config from client-supplied keys (snake_case, camelCase or widget names)"""
        base = base or cls()
        if not data:
            return base
        if not isinstance(data, dict):
            raise TypeError(f"Config must be an object, got {type(data).__name__}")
        return base.with_overrides(**data)

    def _check_consistency(self) -> None:
        if self.blink_recovery_threshold > self.blink_threshold:
            raise ValueError("blink_recovery_threshold must not exceed blink_threshold")
        if self.min_blink_ms > self.max_blink_ms:
            raise ValueError("min_blink_ms must not exceed max_blink_ms")


@dataclass
class SessionState:
    """Snapshot of a liveness session as seen by the caller"""
    status: SessionStatus = SessionStatus.IDLE
    current_challenge: Optional[Challenge] = None
    completed_challenges: int = 0
    total_challenges: int = 0
    error_message: Optional[str] = None
    captured_image: Optional[str] = None

    def snapshot(self) -> "SessionState":
        challenge = self.current_challenge
        return dataclasses.replace(
            self,
            current_challenge=dataclasses.replace(challenge) if challenge else None,
        )

    @property
    def message(self) -> str:
        if self.status == SessionStatus.CHALLENGE and self.current_challenge:
            return self.current_challenge.instruction
        if self.status == SessionStatus.ERROR and self.error_message:
            return self.error_message
        return STATUS_MESSAGES.get(self.status, "Please wait...")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "current_challenge": self.current_challenge.to_dict() if self.current_challenge else None,
            "completed_challenges": self.completed_challenges,
            "total_challenges": self.total_challenges,
            "error_message": self.error_message,
            "captured_image": self.captured_image,
        }


class FeedbackType(str, Enum):
    """Message types sent to a WebSocket client"""
    SESSION_UPDATE = "session_update"
    ERROR = "error"


@dataclass
class VerificationFeedback:
    type: FeedbackType
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: SessionState) -> "VerificationFeedback":
        return cls(
            type=FeedbackType.SESSION_UPDATE,
            message=state.message,
            data=state.to_dict()
        )


@dataclass
class Frame:
    """One camera frame; timestamp in milliseconds, increasing per source"""
    image: np.ndarray
    timestamp: float
    width: int = 0
    height: int = 0

    def __post_init__(self):
        if self.image is not None and not (self.width and self.height):
            self.height, self.width = self.image.shape[:2]


@dataclass
class Landmark:
    x: float
    y: float
    z: float = 0.0


@dataclass
class BlendshapeCategory:
    category_name: str
    score: float


@dataclass
class FaceDetectionResult:
    """
    Output of the face model for one frame.

    Mirrors MediaPipe's FaceLandmarkerResult: one landmark list and one
    blendshape list per detected face.
    """
    face_landmarks: List[List[Landmark]] = field(default_factory=list)
    face_blendshapes: List[List[BlendshapeCategory]] = field(default_factory=list)


