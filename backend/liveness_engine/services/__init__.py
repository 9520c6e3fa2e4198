# Service layer components
from .challenge_engine import ChallengeEngine
from .challenge_detector import evaluate
from .signal_extractor import SignalExtractor
from .model_loader import MediaPipeFaceModel, ModelLoader
from .frame_source import LatestFrameSource, VideoCaptureSource
from .session_orchestrator import LivenessSession
from .websocket_handler import WebSocketHandler

__all__ = ['ChallengeEngine', 'evaluate', 'SignalExtractor', 'MediaPipeFaceModel', 'ModelLoader', 'LatestFrameSource', 'VideoCaptureSource', 'LivenessSession', 'WebSocketHandler']
