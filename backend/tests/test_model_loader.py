"""
Unit tests for face model loading
"""
import asyncio
import threading
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from liveness_engine.exceptions import ModelLoadFailure
from liveness_engine.services.model_loader import (
    MediaPipeFaceModel,
    ModelLoader,
    create_face_model,
)


class TestModelLoader:
    """Tests for load-once behaviour of ModelLoader"""

    @pytest.mark.asyncio
    async def test_concurrent_gets_share_one_load(self):
        calls = []
        release = threading.Event()
        sentinel = object()

        def factory():
            calls.append(1)
            release.wait(timeout=2)
            return sentinel

        loader = ModelLoader(factory=factory)
        waiters = [asyncio.create_task(loader.get()) for _ in range(5)]
        await asyncio.sleep(0.05)
        release.set()
        results = await asyncio.gather(*waiters)

        assert len(calls) == 1
        assert all(result is sentinel for result in results)
        assert loader.is_loaded
        assert loader.model is sentinel

    @pytest.mark.asyncio
    async def test_loaded_model_is_reused(self):
        calls = []

        def factory():
            calls.append(1)
            return object()

        loader = ModelLoader(factory=factory)
        first = await loader.get()
        second = await loader.get()

        assert first is second
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failure_is_shared_by_concurrent_waiters(self):
        release = threading.Event()

        def factory():
            release.wait(timeout=2)
            raise ModelLoadFailure("model file corrupt")

        loader = ModelLoader(factory=factory)
        waiters = [asyncio.create_task(loader.get()) for _ in range(3)]
        await asyncio.sleep(0.05)
        release.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)

        assert all(isinstance(result, ModelLoadFailure) for result in results)
        assert not loader.is_loaded

    @pytest.mark.asyncio
    async def test_failed_load_can_be_retried(self):
        attempts = []
        sentinel = object()

        def factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise ModelLoadFailure("network down")
            return sentinel

        loader = ModelLoader(factory=factory)
        with pytest.raises(ModelLoadFailure):
            await loader.get()

        assert await loader.get() is sentinel
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_wrapped(self):
        def factory():
            raise RuntimeError("boom")

        loader = ModelLoader(factory=factory)
        with pytest.raises(ModelLoadFailure, match="boom"):
            await loader.get()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_load(self):
        release = threading.Event()
        sentinel = object()

        def factory():
            release.wait(timeout=2)
            return sentinel

        loader = ModelLoader(factory=factory)
        first = asyncio.create_task(loader.get())
        second = asyncio.create_task(loader.get())
        await asyncio.sleep(0.05)
        first.cancel()
        release.set()

        assert await second is sentinel
        with pytest.raises(asyncio.CancelledError):
            await first

    def test_default_is_process_wide(self):
        with patch.object(ModelLoader, "_default", None):
            assert ModelLoader.default() is ModelLoader.default()


class TestCreateFaceModel:
    """Tests for create_face_model()"""

    def test_missing_model_file_raises(self, tmp_path):
        missing = tmp_path / "face_landmarker.task"
        with pytest.raises(ModelLoadFailure, match="not found"):
            create_face_model(str(missing))

    def test_invalid_model_file_raises(self, tmp_path):
        model_file = tmp_path / "face_landmarker.task"
        model_file.write_bytes(b"not a model")

        with patch(
            "liveness_engine.services.model_loader.mp.tasks.vision.FaceLandmarker.create_from_options",
            side_effect=RuntimeError("bad flatbuffer")
        ):
            with pytest.raises(ModelLoadFailure, match="bad flatbuffer"):
                create_face_model(str(model_file))


class TestMediaPipeFaceModel:
    """Tests for MediaPipeFaceModel wrapper"""

    def test_preprocess_converts_bgr_to_rgb(self):
        model = MediaPipeFaceModel(MagicMock())
        frame = np.zeros((2, 2, 3), dtype=np.uint8)
        frame[:, :, 0] = 255  # blue channel in BGR

        rgb = model.preprocess_frame(frame)

        assert rgb[0, 0, 2] == 255
        assert rgb[0, 0, 0] == 0

    def test_detect_passes_integer_timestamp(self):
        landmarker = MagicMock()
        landmarker.detect_for_video.return_value = "result"
        model = MediaPipeFaceModel(landmarker)

        result = model.detect(np.zeros((4, 4, 3), dtype=np.uint8), 1234.7)

        assert result == "result"
        _, timestamp = landmarker.detect_for_video.call_args[0]
        assert timestamp == 1234

    def test_close_is_idempotent(self):
        landmarker = MagicMock()
        model = MediaPipeFaceModel(landmarker)

        model.close()
        model.close()

        landmarker.close.assert_called_once()
