"""
Face landmark provider backed by MediaPipe FaceMesh.
Head pose is estimated with OpenCV solvePnP against a generic 3D face model.
"""

import logging
import math
import threading
from typing import Dict, List, Optional, Tuple

import cv2
import mediapipe as mp
import numpy as np

from .face_alignment import ensure_image
from .providers import (FACE_CONTOUR, INNER_LIPS, LEFT_EYE, LEFT_EYEBROW, NOSE,
                        NOSE_CREST, OUTER_LIPS, RIGHT_EYE, RIGHT_EYEBROW,
                        BoundingBox, FaceObservation)

logger = logging.getLogger(__name__)

# FaceMesh indices per region, ordered along each contour.
# Eyes/brows are named from the subject's point of view as seen in the image.
REGION_INDICES: Dict[str, List[int]] = {
    LEFT_EYE: [33, 160, 158, 133, 153, 144],
    RIGHT_EYE: [362, 385, 387, 263, 373, 380],
    LEFT_EYEBROW: [70, 63, 105, 66, 107],
    RIGHT_EYEBROW: [336, 296, 334, 293, 300],
    NOSE: [1, 2, 98, 327, 4],
    NOSE_CREST: [168, 6, 197, 195, 5],
    OUTER_LIPS: [61, 185, 40, 39, 37, 0, 267, 269, 270, 409,
                 291, 375, 321, 405, 314, 17, 84, 181, 91, 146],
    INNER_LIPS: [78, 191, 80, 81, 82, 13, 312, 311, 310, 415,
                 308, 324, 318, 402, 317, 14, 87, 178, 88, 95],
    FACE_CONTOUR: [234, 93, 132, 58, 172, 136, 150, 149, 176, 148, 152,
                   377, 400, 378, 379, 365, 397, 288, 361, 323, 454],
}

# Nose tip, chin, eye outer corners, mouth corners
POSE_INDICES = [1, 152, 33, 263, 61, 291]

MODEL_POINTS = np.array([
    (0.0, 0.0, 0.0),
    (0.0, -330.0, -65.0),
    (-225.0, 170.0, -135.0),
    (225.0, 170.0, -135.0),
    (-150.0, -150.0, -125.0),
    (150.0, -150.0, -125.0),
], dtype=np.float64)


def _wrap_half_pi(angle: float) -> float:
    # The model's y axis points up while image y points down
    if angle > math.pi / 2:
        return angle - math.pi
    if angle < -math.pi / 2:
        return angle + math.pi
    return angle


def estimate_head_pose(points: np.ndarray, frame_shape: Tuple[int, int]) -> Optional[Tuple[float, float, float]]:
    """Return (yaw, pitch, roll) in radians from pixel landmark coordinates."""
    height, width = frame_shape[:2]
    focal_length = max(width, height)
    camera_matrix = np.array([
        [focal_length, 0, width / 2.0],
        [0, focal_length, height / 2.0],
        [0, 0, 1],
    ], dtype=np.float64)
    dist_coeffs = np.zeros((4, 1))

    image_points = np.array([points[i] for i in POSE_INDICES], dtype=np.float64)
    success, rvec, _ = cv2.solvePnP(MODEL_POINTS, image_points, camera_matrix, dist_coeffs,
                                    flags=cv2.SOLVEPNP_ITERATIVE)
    if not success:
        return None

    rmat = cv2.Rodrigues(rvec)[0]
    pitch = _wrap_half_pi(float(np.arctan2(rmat[2][1], rmat[2][2])))
    yaw = float(-np.arctan2(rmat[2][0], np.sqrt(rmat[2][1] ** 2 + rmat[2][2] ** 2)))
    roll = _wrap_half_pi(float(np.arctan2(rmat[1][0], rmat[0][0])))
    return yaw, pitch, roll


class MediaPipeLandmarkProvider:
    """
    FaceMesh exposes no per-face detection score, so observations carry
    confidence 1.0 once the mesh passes min_detection_confidence.
    """

    def __init__(self,
                 max_num_faces: int = 5,
                 static_image_mode: bool = True,
                 min_detection_confidence: float = 0.5,
                 min_tracking_confidence: float = 0.5):
        self.mp_face_mesh = mp.solutions.face_mesh
        self.face_mesh = self.mp_face_mesh.FaceMesh(
            static_image_mode=static_image_mode,
            max_num_faces=max_num_faces,
            refine_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        # FaceMesh graphs are not reentrant
        self._lock = threading.Lock()
        logger.info(f"MediaPipe landmark provider initialized (max faces: {max_num_faces})")

    def _observation(self, face_landmarks, frame_shape: Tuple[int, int]) -> FaceObservation:
        height, width = frame_shape[:2]
        normalized = np.array([(lm.x, lm.y) for lm in face_landmarks.landmark], dtype=np.float64)

        x_min, y_min = np.clip(normalized.min(axis=0), 0.0, 1.0)
        x_max, y_max = np.clip(normalized.max(axis=0), 0.0, 1.0)
        box = BoundingBox(float(x_min), float(y_min), float(x_max - x_min), float(y_max - y_min))

        regions = {
            name: [(float(normalized[i][0]), float(normalized[i][1])) for i in indices]
            for name, indices in REGION_INDICES.items()
        }

        pixels = normalized * np.array([width, height], dtype=np.float64)
        pose = estimate_head_pose(pixels, frame_shape)
        yaw, pitch, roll = pose if pose else (0.0, 0.0, 0.0)

        return FaceObservation(bounding_box=box, landmarks=regions, yaw=yaw, pitch=pitch,
                               roll=roll, confidence=1.0)

    def detect_all(self, image: np.ndarray) -> List[FaceObservation]:
        image = ensure_image(image)
        with self._lock:
            results = self.face_mesh.process(image)
        if not results.multi_face_landmarks:
            return []
        return [self._observation(face, image.shape) for face in results.multi_face_landmarks]

    def detect(self, image: np.ndarray) -> Optional[FaceObservation]:
        faces = self.detect_all(image)
        if not faces:
            return None
        return max(faces, key=lambda f: f.bounding_box.area)

    def close(self) -> None:
        self.face_mesh.close()
