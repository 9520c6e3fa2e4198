#!/usr/bin/env python3
"""
Download the MediaPipe Face Landmarker model used by liveness sessions.

The model must be the blendshape-capable float16 bundle; it is saved to
MEDIAPIPE_MODEL_PATH (default ~/.mediapipe_models/face_landmarker.task).
"""

import sys
import urllib.request
from pathlib import Path

from liveness_engine.config import config

MODEL_URL = "https://storage.googleapis.com/mediapipe-models/face_landmarker/face_landmarker/float16/latest/face_landmarker.task"


def download_model(model_path: Path, force: bool = False) -> bool:
    """Fetch the model into model_path unless it is already present."""
    model_path.parent.mkdir(parents=True, exist_ok=True)

    if model_path.exists() and not force:
        print(f"✓ Model already exists at {model_path} ({model_path.stat().st_size / 1024 / 1024:.2f} MB)")
        return True

    print(f"Downloading Face Landmarker from {MODEL_URL}")
    partial_path = model_path.with_suffix(".part")

    def report_progress(block_num, block_size, total_size):
        if total_size > 0:
            percent = min(100, block_num * block_size * 100 / total_size)
            print(f"\rProgress: {percent:.1f}%", end="")

    try:
        urllib.request.urlretrieve(MODEL_URL, partial_path, reporthook=report_progress)
    except Exception as e:
        print(f"\n✗ Download failed: {e}")
        if partial_path.exists():
            partial_path.unlink()
        return False

    partial_path.replace(model_path)
    print(f"\n✓ Face Landmarker ready at {model_path}")
    return True


def main():
    force = "--force" in sys.argv[1:]
    ok = download_model(Path(config.MEDIAPIPE_MODEL_PATH).expanduser(), force=force)
    if not ok:
        print("Please check your internet connection and try again.")
        sys.exit(1)
    print(f"\nSet MEDIAPIPE_MODEL_PATH={config.MEDIAPIPE_MODEL_PATH} to use a different location.")


if __name__ == "__main__":
    main()
