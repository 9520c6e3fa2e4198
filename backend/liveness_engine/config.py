"""
Configuration management for the application
"""
import os
from pathlib import Path
from dotenv import load_dotenv

from .models.data_models import LivenessConfig

load_dotenv()


DEFAULT_MODEL_PATH = Path.home() / ".mediapipe_models" / "face_landmarker.task"


class Config:
    """Application configuration"""

    # ML Model Configuration
    MEDIAPIPE_MODEL_PATH = os.getenv('MEDIAPIPE_MODEL_PATH', str(DEFAULT_MODEL_PATH))
    MEDIAPIPE_MIN_DETECTION_CONFIDENCE = float(os.getenv('MEDIAPIPE_MIN_DETECTION_CONFIDENCE', '0.5'))

    # Server Configuration
    HOST = os.getenv('HOST', '0.0.0.0')
    PORT = int(os.getenv('PORT', '8000'))
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Session Configuration
    CHALLENGE_COUNT = int(os.getenv('CHALLENGE_COUNT', '3'))
    SESSION_TIMEOUT_MS = int(os.getenv('SESSION_TIMEOUT_MS', '30000'))
    DETECTION_INTERVAL_MS = int(os.getenv('DETECTION_INTERVAL_MS', '50'))
    CAPTURE_DELAY_MS = int(os.getenv('CAPTURE_DELAY_MS', '1000'))

    @classmethod
    def liveness_defaults(cls) -> LivenessConfig:
        """Session parameters used when a caller supplies none"""
        return LivenessConfig(
            challenge_count=cls.CHALLENGE_COUNT,
            timeout_ms=cls.SESSION_TIMEOUT_MS,
            detection_interval_ms=cls.DETECTION_INTERVAL_MS,
            capture_delay_ms=cls.CAPTURE_DELAY_MS,
        )


config = Config()
