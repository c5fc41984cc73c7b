"""
Locates the holder's portrait on an ID card and checks selfie framing.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .face_alignment import crop_region, ensure_image
from .providers import (INNER_LIPS, LEFT_EYE, NOSE, OUTER_LIPS, RIGHT_EYE,
                        BoundingBox, DocumentSegmentationProvider,
                        FaceLandmarkProvider, FaceObservation)

logger = logging.getLogger(__name__)

DOCUMENT_FACE_MARGIN = 0.5
SELFIE_FACE_MARGIN = 0.3
DEFAULT_FACE_MARGIN = 0.4

MIN_DOCUMENT_LANDMARKS = 3
MIN_DOCUMENT_CONFIDENCE = 0.7
DOCUMENT_FACE_AREA = (0.01, 0.4)
DOCUMENT_FACE_ASPECT = (0.5, 2.0)
# The main portrait sits on the left of the card; the ghost image on the right
DOCUMENT_FACE_MAX_CENTER_X = 0.6

SELFIE_MIN_AREA = 0.05
SELFIE_CENTER_RANGE = (0.25, 0.75)

MSG_NO_FACE = "No se detectó ningún rostro"
MSG_MULTIPLE_FACES = "Se detectaron múltiples rostros. Solo debe aparecer una persona."
MSG_TOO_FAR = "Acércate más a la cámara"
MSG_CENTER_HORIZONTAL = "Centra tu rostro horizontalmente"
MSG_CENTER_VERTICAL = "Centra tu rostro verticalmente"
MSG_FACE_OK = "Rostro detectado correctamente"


def count_key_landmarks(face: FaceObservation) -> int:
    return sum([
        face.has_region(LEFT_EYE),
        face.has_region(RIGHT_EYE),
        face.has_region(NOSE),
        face.has_region(OUTER_LIPS) or face.has_region(INNER_LIPS),
    ])


def is_plausible_document_face(face: FaceObservation) -> bool:
    box = face.bounding_box
    if count_key_landmarks(face) < MIN_DOCUMENT_LANDMARKS:
        return False
    if face.confidence <= MIN_DOCUMENT_CONFIDENCE:
        return False
    if not (DOCUMENT_FACE_AREA[0] < box.area < DOCUMENT_FACE_AREA[1]):
        return False
    return DOCUMENT_FACE_ASPECT[0] < box.aspect_ratio < DOCUMENT_FACE_ASPECT[1]


def select_document_face(faces: Sequence[FaceObservation]) -> Optional[FaceObservation]:
    """Pick the main portrait among all faces found on a card."""
    candidates = [f for f in faces if is_plausible_document_face(f)]
    left_side = [f for f in candidates if f.bounding_box.center[0] < DOCUMENT_FACE_MAX_CENTER_X]
    if not left_side:
        logger.info(f"No portrait on the left of the card ({len(candidates)} plausible faces)")
        return None
    return max(left_side, key=lambda f: f.bounding_box.area)


def validate_selfie_faces(faces: Sequence[FaceObservation]) -> Tuple[bool, str]:
    if not faces:
        return False, MSG_NO_FACE
    if len(faces) > 1:
        return False, MSG_MULTIPLE_FACES

    box = faces[0].bounding_box
    if box.area < SELFIE_MIN_AREA:
        return False, MSG_TOO_FAR
    center_x, center_y = box.center
    low, high = SELFIE_CENTER_RANGE
    if center_x < low or center_x > high:
        return False, MSG_CENTER_HORIZONTAL
    if center_y < low or center_y > high:
        return False, MSG_CENTER_VERTICAL
    return True, MSG_FACE_OK


class DocumentFaceLocator:
    def __init__(self,
                 landmark_provider: FaceLandmarkProvider,
                 segmentation_provider: Optional[DocumentSegmentationProvider] = None):
        self.landmark_provider = landmark_provider
        self.segmentation_provider = segmentation_provider

    def crop_document(self, image: np.ndarray) -> np.ndarray:
        """Crop the card out of a photo; the photo is returned as-is without a segmenter."""
        image = ensure_image(image)
        if self.segmentation_provider is None:
            return image
        box = self.segmentation_provider.detect(image)
        if box is None:
            return image
        card = crop_region(image, box, 0.0)
        return card if card is not None else image

    def locate_document_face(self, image: np.ndarray) -> Optional[BoundingBox]:
        face = select_document_face(self.landmark_provider.detect_all(ensure_image(image)))
        return face.bounding_box if face else None

    def crop_document_face(self, image: np.ndarray) -> Optional[np.ndarray]:
        image = ensure_image(image)
        box = self.locate_document_face(image)
        if box is None:
            return None
        return crop_region(image, box, DOCUMENT_FACE_MARGIN)

    def crop_selfie_face(self, image: np.ndarray) -> Optional[np.ndarray]:
        image = ensure_image(image)
        face = self.landmark_provider.detect(image)
        if face is None:
            return None
        return crop_region(image, face.bounding_box, SELFIE_FACE_MARGIN)

    def validate_selfie(self, image: np.ndarray) -> Tuple[bool, str]:
        return validate_selfie_faces(self.landmark_provider.detect_all(ensure_image(image)))
