"""
Synthetic faces and fake collaborators shared by the test scripts.

Images are constant-colour arrays whose centre pixel value acts as a tag;
fake providers look the tag up to decide which face the image contains.
Cropping and alignment keep the centre pixel, so tags survive the pipeline.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np

from idmatch.providers import (FACE_CONTOUR, INNER_LIPS, LEFT_EYE, LEFT_EYEBROW,
                               NOSE, NOSE_CREST, OUTER_LIPS, RIGHT_EYE,
                               RIGHT_EYEBROW, BoundingBox, FaceObservation)

OPEN_EYE = 0.3      # eye aspect ratio of an open eye
CLOSED_EYE = 0.05   # eye aspect ratio of a closed eye
NEUTRAL_MOUTH = 0.1
SMILING_MOUTH = 0.4


def _eye(cx, cy, half_width, aspect):
    lid = aspect * half_width
    return [
        (cx - half_width, cy), (cx - half_width / 2, cy - lid), (cx + half_width / 2, cy - lid),
        (cx + half_width, cy), (cx + half_width / 2, cy + lid), (cx - half_width / 2, cy + lid),
    ]


def _outer_lips(mx, my, half_width, curvature):
    depth = half_width * 0.15
    bottom = my + depth
    corner = bottom - curvature * 2 * half_width
    return [
        (mx - half_width, corner), (mx - half_width / 2, my - depth), (mx, my - depth),
        (mx + half_width / 2, my - depth), (mx + half_width, corner), (mx + half_width / 2, my),
        (mx, bottom), (mx - half_width / 2, my),
    ]


def make_face(x: float = 0.3, y: float = 0.25, width: float = 0.4, height: float = 0.5,
              left_eye: float = OPEN_EYE, right_eye: float = OPEN_EYE,
              mouth_curvature: float = NEUTRAL_MOUTH,
              eye_spacing: float = 0.2, mouth_width: float = 0.15, jaw_drop: float = 1.0,
              yaw: float = 0.0, pitch: float = 0.0, roll: float = 0.0,
              confidence: float = 0.99, regions: Optional[Iterable[str]] = None) -> FaceObservation:
    """Build a face observation; eye_spacing/mouth_width/jaw_drop shape its identity."""
    def px(fx):
        return x + fx * width

    def py(fy):
        return y + fy * height

    eye_y = py(0.4)
    eye_half = 0.08 * width
    landmarks = {
        LEFT_EYE: _eye(px(0.5 - eye_spacing), eye_y, eye_half, left_eye),
        RIGHT_EYE: _eye(px(0.5 + eye_spacing), eye_y, eye_half, right_eye),
        LEFT_EYEBROW: [(px(0.5 - eye_spacing + d), py(0.3)) for d in (-0.08, -0.04, 0.0, 0.04, 0.08)],
        RIGHT_EYEBROW: [(px(0.5 + eye_spacing + d), py(0.3)) for d in (-0.08, -0.04, 0.0, 0.04, 0.08)],
        NOSE: [(px(0.5), py(0.6)), (px(0.5), py(0.62)), (px(0.45), py(0.58)), (px(0.55), py(0.58)), (px(0.5), py(0.56))],
        NOSE_CREST: [(px(0.5), py(f)) for f in (0.4, 0.44, 0.48, 0.52, 0.56)],
        OUTER_LIPS: _outer_lips(px(0.5), py(0.75), mouth_width * width, mouth_curvature),
        INNER_LIPS: [(px(0.5 + d), py(0.75)) for d in (-0.1, -0.05, 0.0, 0.05, 0.1)],
        FACE_CONTOUR: [(px(fx), py(fy)) for fx, fy in (
            (0.0, 0.4), (0.05, 0.6), (0.15, 0.8), (0.3, 0.92 * jaw_drop),
            (0.5, 1.0 * jaw_drop),
            (0.7, 0.92 * jaw_drop), (0.85, 0.8), (0.95, 0.6), (1.0, 0.4))],
    }
    if regions is not None:
        landmarks = {name: points for name, points in landmarks.items() if name in set(regions)}
    return FaceObservation(
        bounding_box=BoundingBox(x, y, width, height),
        landmarks=landmarks,
        yaw=yaw,
        pitch=pitch,
        roll=roll,
        confidence=confidence,
    )


def tagged_image(tag: int, size: int = 240) -> np.ndarray:
    return np.full((size, size, 3), tag, dtype=np.uint8)


def image_tag(image: np.ndarray) -> int:
    height, width = image.shape[:2]
    return int(image[height // 2, width // 2, 0])


class FakeLandmarkProvider:
    """Returns the faces registered for an image tag."""

    def __init__(self, faces: Dict[int, object]):
        self.faces = faces

    def detect_all(self, image: np.ndarray) -> List[FaceObservation]:
        found = self.faces.get(image_tag(image))
        if found is None:
            return []
        return list(found) if isinstance(found, (list, tuple)) else [found]

    def detect(self, image: np.ndarray) -> Optional[FaceObservation]:
        faces = self.detect_all(image)
        return faces[0] if faces else None


class SequenceLandmarkProvider:
    """Returns one scripted observation (or None) per call, in order."""

    def __init__(self, observations: List[Optional[FaceObservation]], repeat_last: bool = True):
        self.observations = list(observations)
        self.repeat_last = repeat_last
        self.calls = 0

    def detect(self, image: np.ndarray) -> Optional[FaceObservation]:
        if self.calls < len(self.observations):
            face = self.observations[self.calls]
        else:
            face = self.observations[-1] if self.repeat_last and self.observations else None
        self.calls += 1
        return face

    def detect_all(self, image: np.ndarray) -> List[FaceObservation]:
        face = self.detect(image)
        return [face] if face else []


class FakeEmbeddingModel:
    """Deep model returning fixed unit vectors per image tag."""

    input_size = 112

    def __init__(self, vectors: Dict[int, np.ndarray], is_available: bool = True, fail: bool = False):
        self.vectors = {tag: np.asarray(v, dtype=np.float32) / np.linalg.norm(v) for tag, v in vectors.items()}
        self.is_available = is_available
        self.fail = fail
        self.calls = 0

    def available(self) -> bool:
        return self.is_available

    def embed(self, aligned_face: np.ndarray) -> np.ndarray:
        self.calls += 1
        if self.fail:
            raise RuntimeError("inference failed")
        return self.vectors[image_tag(aligned_face)]


class FakeTextRecognizer:
    def __init__(self, lines_by_tag: Dict[int, List[str]]):
        self.lines_by_tag = lines_by_tag
        self.hints = None

    def recognize(self, image: np.ndarray, language_hints: List[str]) -> List[str]:
        self.hints = list(language_hints)
        return list(self.lines_by_tag.get(image_tag(image), []))


class ManualClock:
    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


FRONT_LINES = [
    "INSTITUTO NACIONAL ELECTORAL",
    "CREDENCIAL PARA VOTAR",
    "NOMBRE",
    "GARCIA RODRIGUEZ JUAN",
    "DOMICILIO",
    "C SOL 123",
    "COL CENTRO 06000",
    "CUAUHTEMOC, CDMX",
    "CLAVE DE ELECTOR GRRDJN85010109H100",
    "CURP GARC850101HDFRRL09",
    "SECCIÓN 1234 VIGENCIA 2030",
]

BACK_LINES = [
    "IDMEX1234567890",
    "GARC850101HDFRRL09",
    "GRRDJN85010109H100",
    "SECCION 1234",
    "EMISIÓN 03 VIGENCIA 2030",
]
