"""
Unit tests for SignalExtractor
"""
from types import SimpleNamespace

import pytest
from hypothesis import given, strategies as st, settings

from liveness_engine.exceptions import MissingSignals, NoFaceDetected
from liveness_engine.models.data_models import BlendshapeCategory, BlendshapeScores, Landmark
from liveness_engine.services.signal_extractor import SignalExtractor

from conftest import make_landmarks, make_result, no_face_result


@pytest.fixture
def extractor():
    return SignalExtractor()


class TestExtract:
    """Tests for extract()"""

    def test_returns_scores_and_pose(self, extractor):
        result = make_result(eyeBlinkLeft=0.8, jawOpen=0.6)
        frame_scores, head_pose = extractor.extract(result)

        assert frame_scores.eyeBlinkLeft == pytest.approx(0.8)
        assert frame_scores.jawOpen == pytest.approx(0.6)
        assert head_pose.yaw == pytest.approx(0.0)
        assert head_pose.pitch == pytest.approx(0.0)

    def test_missing_keys_default_to_zero(self, extractor):
        frame_scores, _ = extractor.extract(make_result(jawOpen=0.6))
        assert frame_scores.mouthPucker == 0.0
        assert frame_scores.browDownRight == 0.0

    def test_no_face_raises(self, extractor):
        with pytest.raises(NoFaceDetected):
            extractor.extract(no_face_result())

    def test_missing_blendshapes_raises(self, extractor):
        result = SimpleNamespace(face_landmarks=[make_landmarks()], face_blendshapes=[])
        with pytest.raises(MissingSignals):
            extractor.extract(result)

    def test_blendshapes_attribute_absent_raises(self, extractor):
        result = SimpleNamespace(face_landmarks=[make_landmarks()])
        with pytest.raises(MissingSignals):
            extractor.extract(result)

    def test_uses_first_face_only(self, extractor):
        first = [BlendshapeCategory("jawOpen", 0.2)]
        second = [BlendshapeCategory("jawOpen", 0.9)]
        result = SimpleNamespace(
            face_landmarks=[make_landmarks(), make_landmarks()],
            face_blendshapes=[first, second]
        )
        frame_scores, _ = extractor.extract(result)
        assert frame_scores.jawOpen == pytest.approx(0.2)

    def test_accepts_mediapipe_style_categories(self, extractor):
        categories = [SimpleNamespace(category_name="mouthPucker", score=0.55, index=38)]
        result = SimpleNamespace(face_landmarks=[make_landmarks()], face_blendshapes=[categories])
        frame_scores, _ = extractor.extract(result)
        assert frame_scores.mouthPucker == pytest.approx(0.55)


class TestHeadPose:
    """Tests for extract_head_pose()"""

    def test_formula_matches_reference_values(self, extractor):
        landmarks = make_landmarks()
        landmarks[33] = Landmark(0.40, 0.42)
        landmarks[263] = Landmark(0.62, 0.38)
        landmarks[1] = Landmark(0.48, 0.50)

        pose = extractor.extract_head_pose(landmarks)

        # yaw = ((0.40 + 0.62) / 2 - 0.48) * 3, pitch = (0.50 - 0.40) * 2
        assert pose.yaw == pytest.approx(0.09)
        assert pose.pitch == pytest.approx(0.2)

    def test_nose_left_of_center_is_negative_yaw(self, extractor):
        pose = extractor.extract_head_pose(make_landmarks(yaw_offset=-0.1))
        assert pose.yaw == pytest.approx(-0.3)

    def test_yaw_is_clamped(self, extractor):
        pose = extractor.extract_head_pose(make_landmarks(yaw_offset=0.5))
        assert pose.yaw == 1.0

    def test_pitch_is_clamped(self, extractor):
        pose = extractor.extract_head_pose(make_landmarks(pitch_offset=-0.9))
        assert pose.pitch == -1.0

    def test_too_few_landmarks_raises(self, extractor):
        with pytest.raises(MissingSignals):
            extractor.extract_head_pose(make_landmarks(count=100))

    @given(
        nose=st.tuples(st.floats(-2, 2), st.floats(-2, 2)),
        left=st.tuples(st.floats(-2, 2), st.floats(-2, 2)),
        right=st.tuples(st.floats(-2, 2), st.floats(-2, 2)),
    )
    @settings(max_examples=100)
    def test_pose_always_within_unit_range(self, nose, left, right):
        """
        Property: yaw and pitch stay in [-1, 1] for any landmark geometry
        """
        landmarks = make_landmarks()
        landmarks[1] = Landmark(*nose)
        landmarks[33] = Landmark(*left)
        landmarks[263] = Landmark(*right)

        pose = SignalExtractor().extract_head_pose(landmarks)

        assert -1.0 <= pose.yaw <= 1.0
        assert -1.0 <= pose.pitch <= 1.0


class TestBlendshapeScores:
    """Tests for BlendshapeScores construction"""

    def test_from_pairs(self):
        frame_scores = BlendshapeScores.from_categories([("eyeBlinkLeft", 0.3), ("eyeBlinkRight", 0.5)])
        assert frame_scores.blink == pytest.approx(0.4)

    def test_unknown_names_are_ignored(self):
        frame_scores = BlendshapeScores.from_categories([("cheekPuff", 0.9), ("_neutral", 1.0)])
        assert frame_scores == BlendshapeScores()

    def test_scores_are_immutable(self):
        frame_scores = BlendshapeScores()
        with pytest.raises(AttributeError):
            frame_scores.jawOpen = 1.0
