"""
Collaborator contracts consumed by the core.

Landmark detection, document segmentation, text recognition and deep
embedding inference are supplied from outside (MediaPipe, ONNX Runtime,
Tesseract adapters in this package, or fakes in tests). The core only
depends on the protocols below.

Coordinates are normalized to [0, 1] within the image with the origin at
the top-left corner (y grows downwards).
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np

Point = Tuple[float, float]

# Landmark region names shared by every provider
LEFT_EYE = "left_eye"
RIGHT_EYE = "right_eye"
LEFT_EYEBROW = "left_eyebrow"
RIGHT_EYEBROW = "right_eyebrow"
NOSE = "nose"
NOSE_CREST = "nose_crest"
OUTER_LIPS = "outer_lips"
INNER_LIPS = "inner_lips"
FACE_CONTOUR = "face_contour"

LANDMARK_REGIONS = (
    LEFT_EYE, RIGHT_EYE, LEFT_EYEBROW, RIGHT_EYEBROW,
    NOSE, NOSE_CREST, OUTER_LIPS, INNER_LIPS, FACE_CONTOUR,
)


@dataclass(frozen=True)
class BoundingBox:
    """Normalized axis-aligned box."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Point:
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height > 0 else 0.0

    def to_pixels(self, image_width: int, image_height: int) -> Tuple[int, int, int, int]:
        """Return (x, y, w, h) in pixel units."""
        return (
            int(round(self.x * image_width)),
            int(round(self.y * image_height)),
            int(round(self.width * image_width)),
            int(round(self.height * image_height)),
        )


@dataclass
class FaceObservation:
    """A single detected face as reported by a landmark provider."""

    bounding_box: BoundingBox
    landmarks: Dict[str, List[Point]] = field(default_factory=dict)
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0
    confidence: float = 1.0

    def region(self, name: str) -> List[Point]:
        return self.landmarks.get(name) or []

    def has_region(self, name: str) -> bool:
        return len(self.region(name)) > 0

    @property
    def has_landmarks(self) -> bool:
        return any(self.landmarks.values())


class FaceLandmarkProvider(Protocol):
    def detect(self, image: np.ndarray) -> Optional[FaceObservation]:
        """Return the most prominent face or None."""
        ...

    def detect_all(self, image: np.ndarray) -> List[FaceObservation]:
        """Return every face found in the image."""
        ...


class DocumentSegmentationProvider(Protocol):
    def detect(self, image: np.ndarray) -> Optional[BoundingBox]:
        ...


class TextRecognizer(Protocol):
    def recognize(self, image: np.ndarray, language_hints: List[str]) -> List[str]:
        """Return recognized text lines in reading order."""
        ...


class DeepEmbeddingModel(Protocol):
    input_size: int

    def available(self) -> bool:
        ...

    def embed(self, aligned_face: np.ndarray) -> np.ndarray:
        """Return a unit-L2 embedding vector for an aligned face crop."""
        ...
