"""
Liveness State Tracker
Frame-by-frame anti-spoofing challenges (blink, head turn, smile) and a
passive micro-movement check over a short burst of frames.
"""

import asyncio
import inspect
import logging
import random
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, List, Optional, Sequence

import numpy as np

from .errors import NoFaceDetectedError
from .liveness_config import LivenessConfig, create_default_liveness_config
from .providers import (INNER_LIPS, LEFT_EYE, OUTER_LIPS, RIGHT_EYE,
                        FaceLandmarkProvider, FaceObservation, Point)

logger = logging.getLogger(__name__)

# Eye aspect ratio calibration: ~0.12 closed, ~0.25 fully open
EAR_CLOSED = 0.12
EAR_RANGE = 0.13

# Lip-corner curvature calibration: ~0.15 neutral, ~0.35 broad smile
SMILE_NEUTRAL = 0.15
SMILE_RANGE = 0.20

ACTIVE_PASS_CONFIDENCE = 0.9

MSG_INSUFFICIENT_FRAMES = "Insuficientes frames para análisis"
MSG_INSUFFICIENT_FACES = "No se detectó rostro en suficientes frames"
MSG_STATIC_SUBJECT = "No se detectó movimiento natural - posible foto o video"


class LivenessChallenge(Enum):
    BLINK = "blink"
    TURN_LEFT = "turn_left"
    TURN_RIGHT = "turn_right"
    SMILE = "smile"

    @property
    def instruction(self) -> str:
        return _INSTRUCTIONS[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]


_INSTRUCTIONS = {
    LivenessChallenge.BLINK: "Parpadea",
    LivenessChallenge.TURN_LEFT: "Gira tu cabeza hacia la izquierda",
    LivenessChallenge.TURN_RIGHT: "Gira tu cabeza hacia la derecha",
    LivenessChallenge.SMILE: "Sonríe",
}

_ICONS = {
    LivenessChallenge.BLINK: "eye",
    LivenessChallenge.TURN_LEFT: "arrow.left",
    LivenessChallenge.TURN_RIGHT: "arrow.right",
    LivenessChallenge.SMILE: "face.smiling",
}

# Challenges offered at random to the user
ACTIVE_CHALLENGE_POOL = (LivenessChallenge.BLINK, LivenessChallenge.SMILE)


@dataclass(frozen=True)
class FaceState:
    """Snapshot of one processed frame."""

    left_eye_openness: float
    right_eye_openness: float
    yaw: float
    pitch: float
    roll: float
    smile_amount: float
    mouth_openness: float
    timestamp: float

    def is_blinking(self, threshold: float = 0.3) -> bool:
        return self.left_eye_openness < threshold and self.right_eye_openness < threshold

    def is_turned_left(self, threshold: float = 0.2) -> bool:
        return self.yaw < -threshold

    def is_turned_right(self, threshold: float = 0.2) -> bool:
        return self.yaw > threshold

    def is_smiling(self, threshold: float = 0.3) -> bool:
        return self.smile_amount > threshold


def eye_openness(points: Sequence[Point]) -> float:
    """
    Openness of one eye in [0, 1] from its contour points.

    The two horizontal extremes are treated as the eye corners; the rest are
    split into upper and lower lid by their mean height. Fewer than six
    points means the eye cannot be measured and it is reported open.
    """
    if len(points) < 6:
        return 1.0
    ordered = sorted(points, key=lambda p: p[0])
    width = ordered[-1][0] - ordered[0][0]
    if width <= 0:
        return 1.0
    lids = ordered[1:-1]
    mean_y = sum(p[1] for p in lids) / len(lids)
    upper = [p[1] for p in lids if p[1] < mean_y]
    lower = [p[1] for p in lids if p[1] >= mean_y]
    if not upper or not lower:
        return 1.0
    vertical = abs(sum(upper) / len(upper) - sum(lower) / len(lower))
    ear = vertical / width
    return float(np.clip((ear - EAR_CLOSED) / EAR_RANGE, 0.0, 1.0))


def smile_amount(points: Sequence[Point]) -> float:
    """Smile intensity in [0, 1] from how far the lip corners rise above the lowest lip point."""
    if len(points) < 6:
        return 0.0
    left = min(points, key=lambda p: p[0])
    right = max(points, key=lambda p: p[0])
    width = right[0] - left[0]
    if width <= 0:
        return 0.0
    # y grows downwards, so the lowest point has the largest y
    bottom_y = max(p[1] for p in points)
    elevation = bottom_y - (left[1] + right[1]) / 2.0
    curvature = elevation / width
    return float(np.clip((curvature - SMILE_NEUTRAL) / SMILE_RANGE, 0.0, 1.0))


def mouth_openness(points: Sequence[Point]) -> float:
    if len(points) < 2:
        return 0.0
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    width = max(xs) - min(xs)
    if width <= 0:
        return 0.0
    return (max(ys) - min(ys)) / width


def face_state_from_observation(face: FaceObservation, timestamp: float) -> FaceState:
    return FaceState(
        left_eye_openness=eye_openness(face.region(LEFT_EYE)),
        right_eye_openness=eye_openness(face.region(RIGHT_EYE)),
        yaw=face.yaw,
        pitch=face.pitch,
        roll=face.roll,
        smile_amount=smile_amount(face.region(OUTER_LIPS)),
        mouth_openness=mouth_openness(face.region(INNER_LIPS)),
        timestamp=timestamp,
    )


def population_variance(values: Sequence[float]) -> float:
    if len(values) <= 1:
        return 0.0
    return float(np.var(np.asarray(values, dtype=np.float64)))


@dataclass
class LivenessSession:
    """Mutable progress of one challenge attempt. Owned by a single tracker."""

    capacity: int = 30
    history: Deque[FaceState] = field(init=False)
    blink_count: int = 0
    last_blink_time: Optional[float] = None
    was_blinking: bool = False
    turned_left: bool = False
    turned_right: bool = False
    smiled: bool = False

    def __post_init__(self):
        self.history = deque(maxlen=self.capacity)

    def reset(self) -> None:
        self.history.clear()
        self.blink_count = 0
        self.last_blink_time = None
        self.was_blinking = False
        self.turned_left = False
        self.turned_right = False
        self.smiled = False


@dataclass
class LivenessResult:
    is_alive: bool
    confidence: float
    completed_challenges: List[LivenessChallenge] = field(default_factory=list)
    failure_reason: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data['completed_challenges'] = [c.value for c in self.completed_challenges]
        return data


FrameSource = Callable[[], Any]


class LivenessStateTracker:
    """
    Tracks a liveness challenge across a stream of frames.

    Frames must be fed in arrival order from a single producer; blink
    debouncing relies on monotonically increasing timestamps.
    """

    def __init__(self,
                 landmark_provider: FaceLandmarkProvider,
                 config: Optional[LivenessConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.landmark_provider = landmark_provider
        self.config = config or create_default_liveness_config()
        self.clock = clock
        self.session = LivenessSession(capacity=self.config.history_capacity)

    @property
    def history(self) -> List[FaceState]:
        return list(self.session.history)

    def reset(self) -> None:
        self.session.reset()

    def process_frame(self, image: np.ndarray) -> FaceState:
        face = self.landmark_provider.detect(image)
        if face is None:
            raise NoFaceDetectedError()
        state = face_state_from_observation(face, self.clock())
        self.session.history.append(state)
        logger.debug(f"Frame state: eyes=({state.left_eye_openness:.2f}, {state.right_eye_openness:.2f}) "
                     f"yaw={state.yaw:.3f} smile={state.smile_amount:.2f}")
        return state

    def update_challenge_progress(self, state: FaceState, challenge: LivenessChallenge) -> None:
        cfg = self.config
        session = self.session

        if challenge is LivenessChallenge.BLINK:
            blinking = state.is_blinking(cfg.eye_closed_threshold)
            # Only the open-to-closed edge of a closure counts
            if blinking and not session.was_blinking:
                if (session.last_blink_time is None
                        or state.timestamp - session.last_blink_time > cfg.blink_debounce_seconds):
                    session.blink_count += 1
                    session.last_blink_time = state.timestamp
                    logger.debug(f"Blink counted ({session.blink_count})")
            session.was_blinking = blinking
        elif challenge is LivenessChallenge.TURN_LEFT:
            if state.is_turned_left(cfg.turn_yaw_threshold):
                session.turned_left = True
        elif challenge is LivenessChallenge.TURN_RIGHT:
            if state.is_turned_right(cfg.turn_yaw_threshold):
                session.turned_right = True
        elif challenge is LivenessChallenge.SMILE:
            if state.is_smiling(cfg.smile_threshold):
                session.smiled = True

    def check_challenge(self, challenge: LivenessChallenge) -> bool:
        if challenge is LivenessChallenge.BLINK:
            return self.session.blink_count >= self.config.required_blinks
        if challenge is LivenessChallenge.TURN_LEFT:
            return self.session.turned_left
        if challenge is LivenessChallenge.TURN_RIGHT:
            return self.session.turned_right
        return self.session.smiled

    async def _next_frame(self, frame_source: FrameSource):
        frame = frame_source()
        if inspect.isawaitable(frame):
            frame = await frame
        return frame

    async def run_liveness_check(self,
                                 challenge: LivenessChallenge,
                                 frame_source: FrameSource,
                                 timeout: Optional[float] = None) -> LivenessResult:
        """
        Poll frames until the challenge is met or the time budget runs out.

        frame_source may be a plain callable or a coroutine function; it
        returns an image or None when no frame is ready yet.
        """
        cfg = self.config
        budget = cfg.default_timeout if timeout is None else timeout
        self.reset()
        start = self.clock()
        logger.info(f"Starting liveness challenge '{challenge.value}' ({budget:.1f}s budget)")

        def remaining() -> float:
            return budget - (self.clock() - start)

        while remaining() > 0:
            try:
                frame = await asyncio.wait_for(self._next_frame(frame_source), remaining())
            except asyncio.TimeoutError:
                logger.debug("Frame source did not deliver before the deadline")
                break
            # A frame that arrives past the deadline is discarded
            if remaining() <= 0:
                break
            if frame is None:
                await asyncio.sleep(min(cfg.empty_frame_backoff, max(remaining(), 0.0)))
                continue

            try:
                state = self.process_frame(frame)
                self.update_challenge_progress(state, challenge)
                if self.check_challenge(challenge) and remaining() > 0:
                    elapsed = self.clock() - start
                    logger.info(f"Liveness challenge '{challenge.value}' passed in {elapsed:.2f}s")
                    return LivenessResult(
                        is_alive=True,
                        confidence=ACTIVE_PASS_CONFIDENCE,
                        completed_challenges=[challenge],
                    )
            except NoFaceDetectedError:
                logger.debug("No face in frame, skipping")
            except Exception as e:
                logger.warning(f"Frame processing failed, skipping: {e}")

            await asyncio.sleep(min(cfg.poll_interval, max(remaining(), 0.0)))

        logger.info(f"Liveness challenge '{challenge.value}' timed out")
        return LivenessResult(
            is_alive=False,
            confidence=0.0,
            failure_reason=f"No se completó el desafío de '{challenge.instruction}' a tiempo",
        )

    def quick_liveness_check(self, frames: Sequence[np.ndarray]) -> LivenessResult:
        """Passive check: natural micro-movement across a short burst of frames."""
        cfg = self.config
        if len(frames) < cfg.passive_min_frames:
            return LivenessResult(is_alive=False, confidence=0.0, failure_reason=MSG_INSUFFICIENT_FRAMES)

        self.reset()
        states: List[FaceState] = []
        for frame in frames:
            try:
                states.append(self.process_frame(frame))
            except NoFaceDetectedError:
                continue

        if len(states) < cfg.passive_min_valid_frames:
            return LivenessResult(is_alive=False, confidence=0.0, failure_reason=MSG_INSUFFICIENT_FACES)

        total_variance = (population_variance([s.yaw for s in states])
                          + population_variance([s.pitch for s in states])
                          + population_variance([s.left_eye_openness for s in states]))
        logger.info(f"Passive liveness: {len(states)} valid frames, variance={total_variance:.5f}")

        if total_variance > cfg.micro_movement_threshold:
            return LivenessResult(is_alive=True, confidence=min(1.0, total_variance * 100))
        return LivenessResult(is_alive=False, confidence=0.0, failure_reason=MSG_STATIC_SUBJECT)


def generate_challenge(rng: Optional[random.Random] = None) -> LivenessChallenge:
    return (rng or random).choice(ACTIVE_CHALLENGE_POOL)
