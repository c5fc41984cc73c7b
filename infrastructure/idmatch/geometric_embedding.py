"""
Geometric facial embedding built from landmark positions.
Used when no deep embedding model is available, or when it fails.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import NoLandmarksError
from .providers import (FACE_CONTOUR, LEFT_EYE, LEFT_EYEBROW, NOSE, NOSE_CREST,
                        OUTER_LIPS, RIGHT_EYE, RIGHT_EYEBROW, BoundingBox,
                        FaceObservation, Point)
from .similarity import clamp_unit

logger = logging.getLogger(__name__)

EPSILON = 0.001

PROPORTION_WEIGHT = 0.4
ANGLE_WEIGHT = 0.3
LANDMARK_WEIGHT = 0.3

# Landmark distance that is treated as a total mismatch
LANDMARK_DISTANCE_CAP = 0.5
LANDMARK_DISTANCE_SCALE = 0.2


@dataclass(frozen=True)
class FacialEmbedding:
    landmarks: Dict[str, Point] = field(default_factory=dict)
    proportions: Dict[str, float] = field(default_factory=dict)
    angles: Dict[str, float] = field(default_factory=dict)

    def similarity(self, other: "FacialEmbedding") -> float:
        """Weighted agreement of proportions, angles and landmark positions."""
        proportion_score = compare_scalars(self.proportions, other.proportions)
        angle_score = compare_scalars(self.angles, other.angles)
        landmark_score = compare_landmarks(self.landmarks, other.landmarks)
        return clamp_unit(proportion_score * PROPORTION_WEIGHT
                          + angle_score * ANGLE_WEIGHT
                          + landmark_score * LANDMARK_WEIGHT)


def compare_scalars(first: Dict[str, float], second: Dict[str, float]) -> float:
    shared = [key for key in first if key in second]
    if not shared:
        return 0.0
    total = 0.0
    for key in shared:
        a, b = first[key], second[key]
        scale = max(abs(a), abs(b), EPSILON)
        total += min(abs(a - b) / scale, 1.0)
    return max(0.0, 1.0 - total / len(shared))


def compare_landmarks(first: Dict[str, Point], second: Dict[str, Point]) -> float:
    shared = [key for key in first if key in second]
    if not shared:
        return 0.0
    total = 0.0
    for key in shared:
        (x1, y1), (x2, y2) = first[key], second[key]
        total += min(math.hypot(x1 - x2, y1 - y2), LANDMARK_DISTANCE_CAP)
    return max(0.0, 1.0 - (total / len(shared)) / LANDMARK_DISTANCE_SCALE)


def _normalize(point: Point, box: BoundingBox) -> Point:
    width = box.width if box.width > 0 else EPSILON
    height = box.height if box.height > 0 else EPSILON
    return ((point[0] - box.x) / width, (point[1] - box.y) / height)


def _centroid(points: List[Point], box: BoundingBox) -> Point:
    xs = sum(p[0] for p in points) / len(points)
    ys = sum(p[1] for p in points) / len(points)
    return _normalize((xs, ys), box)


def _distance(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def _midpoint(a: Point, b: Point) -> Point:
    return ((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0)


def angle_between(p1: Point, vertex: Point, p2: Point) -> float:
    """Signed angle at vertex from p1 to p2, in radians."""
    v1 = (p1[0] - vertex[0], p1[1] - vertex[1])
    v2 = (p2[0] - vertex[0], p2[1] - vertex[1])
    dot = v1[0] * v2[0] + v1[1] * v2[1]
    cross = v1[0] * v2[1] - v1[1] * v2[0]
    return math.atan2(cross, dot)


def _landmark_points(face: FaceObservation) -> Dict[str, Point]:
    box = face.bounding_box
    points: Dict[str, Point] = {}

    for region, key in ((LEFT_EYE, "leftEyeCenter"), (RIGHT_EYE, "rightEyeCenter"),
                        (NOSE_CREST, "noseCrest"), (LEFT_EYEBROW, "leftEyebrowCenter"),
                        (RIGHT_EYEBROW, "rightEyebrowCenter")):
        region_points = face.region(region)
        if region_points:
            points[key] = _centroid(region_points, box)

    nose = face.region(NOSE)
    if nose:
        points["noseCenter"] = _centroid(nose, box)
        points["noseTip"] = _normalize(nose[0], box)

    lips = face.region(OUTER_LIPS)
    if lips:
        points["mouthCenter"] = _centroid(lips, box)
        if len(lips) >= 2:
            points["mouthLeft"] = _normalize(lips[0], box)
            points["mouthRight"] = _normalize(lips[len(lips) // 2], box)

    contour = face.region(FACE_CONTOUR)
    if len(contour) >= 3:
        points["chin"] = _normalize(contour[len(contour) // 2], box)
        points["jawLeft"] = _normalize(contour[0], box)
        points["jawRight"] = _normalize(contour[-1], box)

    return points


def extract_embedding(face: FaceObservation) -> FacialEmbedding:
    """Build a FacialEmbedding from an observation's landmark regions."""
    if not face.has_landmarks:
        raise NoLandmarksError()

    points = _landmark_points(face)
    proportions: Dict[str, float] = {}
    angles: Dict[str, float] = {}

    left_eye: Optional[Point] = points.get("leftEyeCenter")
    right_eye: Optional[Point] = points.get("rightEyeCenter")
    nose = points.get("noseCenter")
    mouth = points.get("mouthCenter")
    chin = points.get("chin")

    if left_eye and right_eye:
        interocular = _distance(left_eye, right_eye)
        unit = max(interocular, EPSILON)
        eye_mid = _midpoint(left_eye, right_eye)
        proportions["interocularDistance"] = interocular

        if nose:
            left_to_nose = _distance(left_eye, nose)
            right_to_nose = _distance(right_eye, nose)
            proportions["leftEyeToNoseRatio"] = left_to_nose / unit
            proportions["rightEyeToNoseRatio"] = right_to_nose / unit
            proportions["eyeNoseSymmetry"] = (min(left_to_nose, right_to_nose)
                                              / max(left_to_nose, right_to_nose, EPSILON))
        if mouth:
            proportions["eyeToMouthRatio"] = _distance(eye_mid, mouth) / unit
        if chin:
            proportions["faceHeightRatio"] = _distance(eye_mid, chin) / unit
        if "mouthLeft" in points and "mouthRight" in points:
            proportions["mouthWidthRatio"] = _distance(points["mouthLeft"], points["mouthRight"]) / unit
        if "jawLeft" in points and "jawRight" in points:
            proportions["jawWidthRatio"] = _distance(points["jawLeft"], points["jawRight"]) / unit

        if nose:
            angles["eyeNoseAngle"] = angle_between(left_eye, nose, right_eye)
        if mouth:
            angles["eyeMouthAngle"] = angle_between(left_eye, mouth, right_eye)

    if nose and mouth and chin:
        angles["noseMouthChinAngle"] = angle_between(nose, mouth, chin)

    logger.debug(f"Geometric embedding: {len(points)} landmarks, "
                 f"{len(proportions)} proportions, {len(angles)} angles")
    return FacialEmbedding(landmarks=points, proportions=proportions, angles=angles)
