# Data models
from .data_models import (
    BlendshapeCategory,
    BlendshapeScores,
    Challenge,
    ChallengeState,
    ChallengeType,
    FaceDetectionResult,
    FeedbackType,
    Frame,
    HeadPose,
    Landmark,
    LivenessConfig,
    SessionState,
    SessionStatus,
    VerificationFeedback,
    STATUS_MESSAGES,
    WinkSide,
)
from .schemas import SessionConfigRequest

__all__ = [
    'BlendshapeCategory', 'BlendshapeScores', 'Challenge', 'ChallengeState',
    'ChallengeType', 'FaceDetectionResult', 'FeedbackType', 'Frame', 'HeadPose', 'Landmark',
    'LivenessConfig', 'SessionState', 'SessionStatus', 'STATUS_MESSAGES', 'VerificationFeedback', 'WinkSide',
    'SessionConfigRequest',
]
