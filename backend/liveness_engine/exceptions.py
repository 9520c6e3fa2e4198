"""
Error taxonomy for liveness sessions.

The session orchestrator absorbs these and reflects them in SessionState;
callers never receive lower-level exceptions.
"""


class LivenessError(Exception):
    """Base class for liveness engine errors"""


class ModelLoadFailure(LivenessError):
    """The face model could not be loaded (fatal for the session)"""


class NoFaceDetected(LivenessError):
    """The model found no face in the frame (transient)"""


class MissingSignals(LivenessError):
    """A face was found but blendshapes or landmarks are missing (model misconfiguration)"""


class FrameOutOfOrder(LivenessError):
    """Frame timestamp is not newer than the last processed frame (skipped silently)"""


class CaptureFailure(LivenessError):
    """No frame was available for the final still capture"""
