"""
Challenge detection rules.

One pure handler per ChallengeType turns the current frame's signals and
the previous ChallengeState into (completed, new_state). Timing is driven
by the injected `now` (milliseconds on the frame clock), never by the wall
clock, so sequences of frames replay deterministically.
"""
import logging
from typing import Callable, Dict, Tuple

from ..models.data_models import (
    BlendshapeScores,
    ChallengeState,
    ChallengeType,
    HeadPose,
    LivenessConfig,
    WinkSide,
)

logger = logging.getLogger(__name__)

Evaluation = Tuple[bool, ChallengeState]
Handler = Callable[[BlendshapeScores, HeadPose, ChallengeState, LivenessConfig, float], Evaluation]


def _blink(scores, head_pose, state, config, now) -> Evaluation:
    avg_blink = scores.blink

    if avg_blink > config.blink_threshold:
        if not state.eyes_closed:
            return False, state.replace(eyes_closed=True, eyes_closed_time=now)
        return False, state

    if state.eyes_closed and avg_blink < config.blink_recovery_threshold:
        duration = now - state.eyes_closed_time
        reopened = state.replace(eyes_closed=False, eyes_closed_time=None)
        if config.min_blink_ms <= duration <= config.max_blink_ms:
            return True, reopened
        logger.debug(f"Rejected blink lasting {duration:.0f}ms")
        return False, reopened

    # Between the two thresholds: hold the current state
    return False, state


def _turn_left(scores, head_pose, state, config, now) -> Evaluation:
    if head_pose.yaw < -config.head_turn_threshold:
        if not state.turned_left:
            return False, state.replace(turned_left=True)
        return False, state

    if state.turned_left and abs(head_pose.yaw) < config.head_center_threshold:
        return True, state.replace(turned_left=False)
    return False, state


def _turn_right(scores, head_pose, state, config, now) -> Evaluation:
    if head_pose.yaw > config.head_turn_threshold:
        if not state.turned_right:
            return False, state.replace(turned_right=True)
        return False, state

    if state.turned_right and abs(head_pose.yaw) < config.head_center_threshold:
        return True, state.replace(turned_right=False)
    return False, state


def _smile(scores, head_pose, state, config, now) -> Evaluation:
    return scores.smile > config.smile_threshold, state


def _open_mouth(scores, head_pose, state, config, now) -> Evaluation:
    return scores.jawOpen > config.jaw_open_threshold, state


def _raise_eyebrows(scores, head_pose, state, config, now) -> Evaluation:
    avg_brow = (scores.browOuterUpLeft + scores.browOuterUpRight + scores.browInnerUp) / 3.0
    return avg_brow > config.brow_raise_threshold, state


def _squint(scores, head_pose, state, config, now) -> Evaluation:
    avg_squint = (scores.eyeSquintLeft + scores.eyeSquintRight) / 2.0
    # Must squint without fully closing the eyes
    return avg_squint > config.squint_threshold and scores.blink < config.blink_threshold, state


def _look_up(scores, head_pose, state, config, now) -> Evaluation:
    avg_look = (scores.eyeLookUpLeft + scores.eyeLookUpRight) / 2.0
    return avg_look > config.eye_look_threshold, state


def _look_down(scores, head_pose, state, config, now) -> Evaluation:
    avg_look = (scores.eyeLookDownLeft + scores.eyeLookDownRight) / 2.0
    return avg_look > config.eye_look_threshold, state


def _wink(side: WinkSide) -> Handler:
    """Build the hold-to-complete wink rule for one eye"""

    def handler(scores, head_pose, state, config, now) -> Evaluation:
        if side == WinkSide.LEFT:
            closed_eye, open_eye = scores.eyeBlinkLeft, scores.eyeBlinkRight
        else:
            closed_eye, open_eye = scores.eyeBlinkRight, scores.eyeBlinkLeft

        both_closed = closed_eye > config.wink_threshold and open_eye > config.wink_threshold
        asymmetric = (
            closed_eye > config.wink_threshold
            and open_eye < config.wink_open_eye_threshold
            and not both_closed
        )

        if not asymmetric:
            if state.winking_side == WinkSide.NONE and state.wink_start_time is None:
                return False, state
            return False, state.replace(winking_side=WinkSide.NONE, wink_start_time=None)

        if state.winking_side != side or state.wink_start_time is None:
            return False, state.replace(winking_side=side, wink_start_time=now)

        if now - state.wink_start_time >= config.wink_hold_ms:
            return True, state.replace(winking_side=WinkSide.NONE, wink_start_time=None)
        return False, state

    handler.__name__ = f"_wink_{side.value}"
    return handler


def _purse_lips(scores, head_pose, state, config, now) -> Evaluation:
    return scores.mouthPucker > config.purse_lips_threshold, state


def _frown(scores, head_pose, state, config, now) -> Evaluation:
    avg_frown = (scores.mouthFrownLeft + scores.mouthFrownRight) / 2.0
    avg_brow_down = (scores.browDownLeft + scores.browDownRight) / 2.0
    # Either a mouth frown or lowered brows is enough
    return avg_frown > config.frown_threshold or avg_brow_down > config.frown_threshold, state


CHALLENGE_HANDLERS: Dict[ChallengeType, Handler] = {
    ChallengeType.BLINK: _blink,
    ChallengeType.TURN_LEFT: _turn_left,
    ChallengeType.TURN_RIGHT: _turn_right,
    ChallengeType.SMILE: _smile,
    ChallengeType.OPEN_MOUTH: _open_mouth,
    ChallengeType.RAISE_EYEBROWS: _raise_eyebrows,
    ChallengeType.SQUINT: _squint,
    ChallengeType.LOOK_UP: _look_up,
    ChallengeType.LOOK_DOWN: _look_down,
    ChallengeType.WINK_LEFT: _wink(WinkSide.LEFT),
    ChallengeType.WINK_RIGHT: _wink(WinkSide.RIGHT),
    ChallengeType.PURSE_LIPS: _purse_lips,
    ChallengeType.FROWN: _frown,
}

STATEFUL_CHALLENGES = frozenset({
    ChallengeType.BLINK,
    ChallengeType.TURN_LEFT,
    ChallengeType.TURN_RIGHT,
    ChallengeType.WINK_LEFT,
    ChallengeType.WINK_RIGHT,
})


def evaluate(
    challenge_type: ChallengeType,
    scores: BlendshapeScores,
    head_pose: HeadPose,
    previous_state: ChallengeState,
    config: LivenessConfig,
    now: float
) -> Evaluation:
    """
    Evaluate one frame against the active challenge.

    Args:
        challenge_type: Gesture currently requested
        scores: Blendshape scores for this frame
        head_pose: Head pose for this frame
        previous_state: Evaluation memory from the previous frame
        config: Session thresholds and timing windows
        now: Frame timestamp in milliseconds

    Returns:
        Tuple of (completed, new_state). Stateless rules return
        previous_state unchanged.
    """
    handler = CHALLENGE_HANDLERS[ChallengeType(challenge_type)]
    return handler(scores, head_pose, previous_state, config, now)
