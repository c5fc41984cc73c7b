"""
Liveness challenge thresholds and timings.
"""

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

MAX_CHALLENGE_SECONDS = 15.0


@dataclass
class LivenessConfig:
    """Configuration for the liveness state tracker."""

    # Per-frame predicates
    eye_closed_threshold: float = 0.3
    turn_yaw_threshold: float = 0.2  # radians
    smile_threshold: float = 0.3

    # Blink counting
    blink_debounce_seconds: float = 0.2
    required_blinks: int = 1

    # Rolling history (~1s at 30 fps)
    history_capacity: int = 30

    # Active challenge loop
    default_timeout: float = 10.0
    poll_interval: float = 0.033
    empty_frame_backoff: float = 0.1

    # Passive check
    passive_min_frames: int = 5
    passive_min_valid_frames: int = 3
    micro_movement_threshold: float = 0.001

    def __post_init__(self):
        """Validate configuration parameters."""
        for name in ("eye_closed_threshold", "smile_threshold"):
            if not (0 < getattr(self, name) < 1):
                raise ValueError(f"{name} must be between 0 and 1")
        if self.turn_yaw_threshold <= 0:
            raise ValueError("turn_yaw_threshold must be positive")
        if self.blink_debounce_seconds < 0:
            raise ValueError("blink_debounce_seconds must be non-negative")
        if self.required_blinks < 1:
            raise ValueError("required_blinks must be at least 1")
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")
        if not (0 < self.default_timeout <= MAX_CHALLENGE_SECONDS):
            raise ValueError(f"default_timeout must be in (0, {MAX_CHALLENGE_SECONDS}]")
        if self.poll_interval < 0 or self.empty_frame_backoff < 0:
            raise ValueError("poll intervals must be non-negative")
        if self.passive_min_valid_frames > self.passive_min_frames:
            raise ValueError("passive_min_valid_frames must be <= passive_min_frames")


def create_default_liveness_config() -> LivenessConfig:
    return LivenessConfig()


def create_liveness_config(**overrides) -> LivenessConfig:
    """Default configuration with selected fields overridden."""
    config = LivenessConfig(**overrides)
    logger.info(f"Liveness config: timeout={config.default_timeout}s, "
                f"blinks={config.required_blinks}, history={config.history_capacity}")
    return config
