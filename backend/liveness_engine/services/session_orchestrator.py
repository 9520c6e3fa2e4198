"""
Session Orchestrator for liveness verification

Runs one challenge session on the asyncio event loop: loads the face
model, issues a random challenge sequence, evaluates frames on a periodic
tick, enforces the session timeout and captures the final still.
"""
import asyncio
import inspect
import logging
from typing import AsyncIterator, Callable, Iterable, List, Optional

from ..exceptions import CaptureFailure, FrameOutOfOrder, MissingSignals, ModelLoadFailure, NoFaceDetected
from ..models.data_models import (
    Challenge,
    ChallengeState,
    ChallengeType,
    Frame,
    LivenessConfig,
    SessionState,
    SessionStatus,
)
from .challenge_detector import evaluate
from .challenge_engine import ChallengeEngine
from .frame_source import FrameSource
from .model_loader import ModelLoader
from .signal_extractor import SignalExtractor

logger = logging.getLogger(__name__)


class LivenessSession:
    """
    Owns the status machine of a single liveness session.

    idle -> loading -> positioning <-> challenge -> success
    Any non-terminal status may end in timeout or error. All scheduled
    work (detection tick, timeout, delayed capture) is held as tasks on
    this object so stopping the session cancels everything.
    """

    def __init__(
        self,
        frame_source: FrameSource,
        model_loader: Optional[ModelLoader] = None,
        challenge_engine: Optional[ChallengeEngine] = None,
        signal_extractor: Optional[SignalExtractor] = None,
        on_success: Optional[Callable[[str], object]] = None,
        default_config: Optional[LivenessConfig] = None,
        available_types: Optional[Iterable[ChallengeType]] = None
    ):
        """
        Args:
            frame_source: Camera source providing frames and the final still
            model_loader: Memoized face model (process-wide loader by default)
            challenge_engine: Challenge sequence generator
            signal_extractor: Converts model output to blendshapes and head pose
            on_success: Called with the captured JPEG data URL after success
            default_config: Config used when start_session gets none
            available_types: Restrict the challenge catalog for this session
        """
        self.frame_source = frame_source
        self.model_loader = model_loader or ModelLoader.default()
        self.challenge_engine = challenge_engine or ChallengeEngine()
        self.signal_extractor = signal_extractor or SignalExtractor()
        self.on_success = on_success
        self.default_config = default_config or LivenessConfig()
        self.available_types = list(available_types) if available_types is not None else None

        self._config = self.default_config
        self._state = SessionState(total_challenges=self._config.challenge_count)
        self._challenges: List[Challenge] = []
        self._index = 0
        self._challenge_state = ChallengeState()
        self._last_timestamp: Optional[float] = None
        self._detection_errors = 0

        self._updates: Optional[asyncio.Queue] = None
        self._run_task: Optional[asyncio.Task] = None
        self._detection_task: Optional[asyncio.Task] = None
        self._timeout_task: Optional[asyncio.Task] = None
        self._capture_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SessionState:
        return self._state.snapshot()

    @property
    def config(self) -> LivenessConfig:
        return self._config

    @property
    def challenges(self) -> List[Challenge]:
        return list(self._challenges)

    @property
    def challenge_state(self) -> ChallengeState:
        return self._challenge_state

    @property
    def captured_image(self) -> Optional[str]:
        return self._state.captured_image

    @property
    def is_running(self) -> bool:
        return any(task is not None and not task.done() for task in self._tasks())

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def start_session(self, config: Optional[LivenessConfig] = None, **overrides) -> AsyncIterator[SessionState]:
        """
        Start a new session and return its stream of state updates.

        Must be called from a running event loop. Any previous session on
        this object is stopped first.

        Args:
            config: Session parameters (defaults to default_config)
            **overrides: Individual config fields to override

        Returns:
            Async iterator yielding a SessionState snapshot after every change;
            it ends after the terminal update
        """
        loop = asyncio.get_running_loop()
        self.stop_session()

        base = config or self.default_config
        self._config = base.with_overrides(**overrides) if overrides else base
        self._challenges = []
        self._index = 0
        self._challenge_state = ChallengeState()
        self._last_timestamp = None
        self._detection_errors = 0

        self._updates = asyncio.Queue()
        self._state = SessionState(
            status=SessionStatus.LOADING,
            total_challenges=self._config.challenge_count
        )
        logger.info(f"Starting liveness session with {self._config.challenge_count} challenges")
        self._emit()

        self._run_task = loop.create_task(self._run())
        return self._stream(self._updates)

    def stop_session(self) -> None:
        """Cancel the tick, timeout and pending capture, and end the update stream"""
        self._cancel_tasks()
        self._close_updates()

    def reset_session(self) -> None:
        """Stop any running session and return to idle"""
        self.stop_session()
        self._challenges = []
        self._index = 0
        self._challenge_state = ChallengeState()
        self._last_timestamp = None
        self._detection_errors = 0
        self._state = SessionState(total_challenges=self._config.challenge_count)

    async def wait_closed(self) -> None:
        """Wait until every task of the current session has finished or been cancelled"""
        tasks = [task for task in self._tasks() if task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Session flow
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            await self._begin()
        except Exception as e:
            logger.exception("Liveness session failed to start")
            self._fail(f"Session failed to start: {e}")

    async def _begin(self) -> None:
        try:
            model = await self.model_loader.get()
        except ModelLoadFailure as e:
            self._fail(str(e) or "Failed to load models")
            return

        self._challenges = self.challenge_engine.generate_challenge_sequence(
            self._config.challenge_count,
            self.available_types
        )
        if not self._challenges:
            self._fail("No challenges available for this session")
            return

        self._state.total_challenges = len(self._challenges)
        self._state.current_challenge = self._challenges[0]
        self._set_status(SessionStatus.POSITIONING)
        logger.info(f"Challenge sequence: {[c.type.value for c in self._challenges]}")

        loop = asyncio.get_running_loop()
        self._timeout_task = loop.create_task(self._timeout_after(self._config.timeout_ms / 1000.0))
        self._detection_task = loop.create_task(self._detection_loop(model))

    async def _detection_loop(self, model) -> None:
        # Each tick finishes before the next sleep starts, so ticks never overlap
        try:
            interval = self._config.detection_interval_ms / 1000.0
            while not self._state.status.is_terminal:
                await self._tick(model)
                if self._state.status.is_terminal:
                    break
                await asyncio.sleep(interval)
        except Exception as e:
            logger.exception("Detection loop failed")
            self._fail(f"Liveness check failed: {e}")

    async def _tick(self, model) -> None:
        frame = self.frame_source.get_frame()
        if frame is None:
            return

        try:
            self._check_frame_order(frame)
        except FrameOutOfOrder as e:
            logger.debug(str(e))
            return
        self._last_timestamp = frame.timestamp

        try:
            result = await asyncio.to_thread(model.detect, frame.image, frame.timestamp)
        except Exception as e:
            self._detection_errors += 1
            logger.warning(
                f"Detection error ({self._detection_errors}/"
                f"{self._config.max_consecutive_detection_errors}): {e}"
            )
            if self._detection_errors >= self._config.max_consecutive_detection_errors:
                self._fail(f"Face detection failed: {e}")
            return
        self._detection_errors = 0

        try:
            scores, head_pose = self.signal_extractor.extract(result)
        except NoFaceDetected:
            if self._state.status != SessionStatus.POSITIONING:
                logger.info("Face lost, back to positioning")
                self._set_status(SessionStatus.POSITIONING)
            return
        except MissingSignals as e:
            self._fail(str(e))
            return

        challenge = self._current_challenge()
        if challenge is None:
            return

        if self._state.status == SessionStatus.POSITIONING:
            self._state.current_challenge = challenge
            self._set_status(SessionStatus.CHALLENGE)

        logger.debug(
            f"Challenge: {challenge.type.value} | Blink: {scores.blink:.2f} | "
            f"Smile: {scores.smile:.2f} | Jaw: {scores.jawOpen:.2f} | Yaw: {head_pose.yaw:.2f}"
        )

        completed, self._challenge_state = evaluate(
            challenge.type,
            scores,
            head_pose,
            self._challenge_state,
            self._config,
            frame.timestamp
        )

        if completed:
            logger.info(f"Challenge completed: {challenge.type.value}")
            self._advance()

    def _check_frame_order(self, frame: Frame) -> None:
        if self._last_timestamp is not None and frame.timestamp <= self._last_timestamp:
            raise FrameOutOfOrder(
                f"Skipping frame at {frame.timestamp} (last processed {self._last_timestamp})"
            )

    def _current_challenge(self) -> Optional[Challenge]:
        if self._index < len(self._challenges):
            return self._challenges[self._index]
        return None

    def _advance(self) -> None:
        self._challenges[self._index].completed = True
        self._index += 1
        self._challenge_state = ChallengeState()
        self._state.completed_challenges = self._index

        if self._index >= len(self._challenges):
            self._succeed()
            return

        self._state.current_challenge = self._challenges[self._index]
        self._emit()

    def _succeed(self) -> None:
        self._cancel_tasks()
        self._state.current_challenge = None
        self._state.completed_challenges = len(self._challenges)
        self._set_status(SessionStatus.SUCCESS)
        self._capture_task = asyncio.get_running_loop().create_task(
            self._capture_after_delay(self._config.capture_delay_ms / 1000.0)
        )

    async def _capture_after_delay(self, delay: float) -> None:
        # Let the user return to a neutral expression before the still
        await asyncio.sleep(delay)
        try:
            image = self._capture_still()
        except CaptureFailure as e:
            self._fail(str(e))
            return

        self._state.captured_image = image
        logger.info("Captured verification still")
        self._emit()
        self._close_updates()

        if self.on_success is not None:
            try:
                result = self.on_success(image)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("on_success callback failed")

    def _capture_still(self) -> str:
        try:
            image = self.frame_source.capture_still()
        except Exception as e:
            raise CaptureFailure(f"Failed to capture still: {e}") from e
        if not image:
            raise CaptureFailure("No frame available to capture")
        return image

    async def _timeout_after(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
        if self._state.status.is_terminal:
            return
        logger.info(
            f"Session timed out after {seconds:.1f}s "
            f"({self._state.completed_challenges}/{self._state.total_challenges} completed)"
        )
        self._cancel_tasks()
        self._set_status(SessionStatus.TIMEOUT)
        self._close_updates()

    def _fail(self, message: str) -> None:
        logger.error(f"Liveness session error: {message}")
        self._cancel_tasks()
        self._state.error_message = message
        self._set_status(SessionStatus.ERROR)
        self._close_updates()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_status(self, status: SessionStatus) -> None:
        if self._state.status != status:
            logger.info(f"Session status: {self._state.status.value} -> {status.value}")
        self._state.status = status
        self._emit()

    def _emit(self) -> None:
        if self._updates is not None:
            self._updates.put_nowait(self._state.snapshot())

    def _close_updates(self) -> None:
        if self._updates is not None:
            self._updates.put_nowait(None)
            self._updates = None

    def _tasks(self):
        return (self._run_task, self._detection_task, self._timeout_task, self._capture_task)

    def _cancel_tasks(self) -> None:
        current = asyncio.current_task() if _has_running_loop() else None
        for task in self._tasks():
            if task is not None and task is not current and not task.done():
                task.cancel()

    @staticmethod
    async def _stream(queue: asyncio.Queue) -> AsyncIterator[SessionState]:
        while True:
            update = await queue.get()
            if update is None:
                return
            yield update


def _has_running_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True
