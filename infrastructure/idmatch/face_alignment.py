"""
Face crops for embedding models and document portraits.
Images are RGB numpy arrays (H, W, 3).
"""

import logging
import math
from typing import Optional, Tuple

import cv2
import numpy as np

from .errors import InvalidImageError
from .providers import LEFT_EYE, RIGHT_EYE, BoundingBox, FaceObservation

logger = logging.getLogger(__name__)

ALIGNMENT_EXPANSION = 0.2
MIN_CROP_SIZE = 10

Rect = Tuple[float, float, float, float]


def ensure_image(image) -> np.ndarray:
    if not isinstance(image, np.ndarray) or image.ndim not in (2, 3) or image.size == 0:
        raise InvalidImageError()
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_RGBA2RGB)
    return image


def _pixel_rect(box: BoundingBox, width: int, height: int) -> Rect:
    return (box.x * width, box.y * height, box.width * width, box.height * height)


def expand_rect(rect: Rect, ratio: float, width: int, height: int) -> Optional[Rect]:
    """Grow a rect by ratio on every side and intersect it with the image."""
    x, y, w, h = rect
    x0 = max(0.0, x - w * ratio)
    y0 = max(0.0, y - h * ratio)
    x1 = min(float(width), x + w + w * ratio)
    y1 = min(float(height), y + h + h * ratio)
    if x1 <= x0 or y1 <= y0:
        return None
    return (x0, y0, x1 - x0, y1 - y0)


def crop_region(image: np.ndarray, box: BoundingBox, margin: float,
                min_size: int = MIN_CROP_SIZE) -> Optional[np.ndarray]:
    """Crop a normalized box plus margin; None if the result is too small."""
    height, width = image.shape[:2]
    rect = expand_rect(_pixel_rect(box, width, height), margin, width, height)
    if rect is None:
        return None
    x, y, w, h = (int(round(v)) for v in rect)
    if w <= min_size or h <= min_size:
        return None
    return image[y:y + h, x:x + w].copy()


def crop_face(image: np.ndarray, face: FaceObservation, output_size: int = 112) -> Optional[np.ndarray]:
    """Plain box crop expanded for context and resized to the model input."""
    crop = crop_region(image, face.bounding_box, ALIGNMENT_EXPANSION, min_size=0)
    if crop is None or crop.size == 0:
        return None
    return cv2.resize(crop, (output_size, output_size), interpolation=cv2.INTER_LINEAR)


def _eye_center(points, width: int, height: int) -> Tuple[float, float]:
    xs = sum(p[0] for p in points) / len(points)
    ys = sum(p[1] for p in points) / len(points)
    return (xs * width, ys * height)


def align_face(image: np.ndarray, face: FaceObservation, output_size: int = 112) -> Optional[np.ndarray]:
    """
    Rotate the face so the eye line is horizontal and fit it into a square
    crop of output_size. Falls back to crop_face without eye landmarks.
    """
    image = ensure_image(image)
    height, width = image.shape[:2]
    left_eye = face.region(LEFT_EYE)
    right_eye = face.region(RIGHT_EYE)
    if not left_eye or not right_eye:
        return crop_face(image, face, output_size)

    rect = expand_rect(_pixel_rect(face.bounding_box, width, height), ALIGNMENT_EXPANSION, width, height)
    if rect is None:
        return crop_face(image, face, output_size)

    lx, ly = _eye_center(left_eye, width, height)
    rx, ry = _eye_center(right_eye, width, height)
    angle = math.degrees(math.atan2(ry - ly, rx - lx))

    x, y, w, h = rect
    center = (x + w / 2.0, y + h / 2.0)
    scale = min(output_size / w, output_size / h)

    matrix = cv2.getRotationMatrix2D(center, angle, scale)
    matrix[0, 2] += output_size / 2.0 - center[0]
    matrix[1, 2] += output_size / 2.0 - center[1]

    aligned = cv2.warpAffine(image, matrix, (output_size, output_size),
                             flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_CONSTANT)
    logger.debug(f"Aligned face with eye-line angle {angle:.1f} deg, scale {scale:.3f}")
    return aligned
