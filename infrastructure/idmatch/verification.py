"""
Identity verification flow: document processing, liveness, face scoring
and the final decision.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import numpy as np

from .decision import ConfidenceTier, VerificationResult, decide, profile_for_strategy
from .document_face import DocumentFaceLocator
from .document_fields import (DocumentBackFields, DocumentFieldExtractor,
                              DocumentFrontFields, extract_back, extract_front)
from .document_validation import ValidationResult, cross_validate
from .errors import IdMatchError, NoFaceDetectedError
from .face_comparison import GEOMETRIC_STRATEGY, FaceSimilarityScorer
from .liveness import LivenessChallenge, LivenessResult, LivenessStateTracker, generate_challenge

logger = logging.getLogger(__name__)

MSG_NO_DOCUMENT_FACE = "No se detectó rostro en la fotografía de la INE"
MSG_NO_NEAR_FACE = "No se detectó rostro en la selfie cercana"
MSG_NO_FAR_FACE = "No se detectó rostro en la selfie lejana"


@dataclass
class DocumentRecord:
    front_fields: Optional[DocumentFrontFields] = None
    back_fields: Optional[DocumentBackFields] = None
    validation: Optional[ValidationResult] = None
    face_crop: Optional[np.ndarray] = None

    @property
    def person_fields(self) -> Optional[Dict[str, Any]]:
        return self.front_fields.to_dict() if self.front_fields else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'front': self.front_fields.to_dict() if self.front_fields else None,
            'back': self.back_fields.to_dict() if self.back_fields else None,
            'validation': self.validation.to_dict() if self.validation else None,
            'face_detected': self.face_crop is not None,
        }


def failed_result(message: str, person_fields: Optional[Dict[str, Any]] = None) -> VerificationResult:
    return VerificationResult(
        is_match=False,
        confidence=ConfidenceTier.FALLIDA,
        doc_vs_near=0.0,
        doc_vs_far=0.0,
        near_vs_far=0.0,
        message=message,
        person_fields=person_fields,
    )


class IdentityVerificationService:
    """Coordinates the collaborators for one verification attempt at a time."""

    def __init__(self,
                 scorer: FaceSimilarityScorer,
                 locator: DocumentFaceLocator,
                 extractor: Optional[DocumentFieldExtractor] = None,
                 tracker: Optional[LivenessStateTracker] = None):
        self.scorer = scorer
        self.locator = locator
        self.extractor = extractor
        self.tracker = tracker

    def process_document_text(self, front_lines: Optional[List[str]],
                              back_lines: Optional[List[str]]) -> DocumentRecord:
        record = DocumentRecord()
        if front_lines is not None:
            record.front_fields = extract_front(front_lines)
        if back_lines is not None:
            record.back_fields = extract_back(back_lines)
        if record.front_fields and record.back_fields:
            record.validation = cross_validate(record.front_fields, record.back_fields)
        return record

    def process_document(self, front_image: Optional[np.ndarray],
                         back_image: Optional[np.ndarray] = None) -> DocumentRecord:
        """Read both card sides, cross-check them and crop the portrait."""
        record = DocumentRecord()
        front = self.locator.crop_document(front_image) if front_image is not None else None
        back = self.locator.crop_document(back_image) if back_image is not None else None

        if self.extractor is not None:
            if front is not None:
                record.front_fields = self.extractor.read_front(front)
            if back is not None:
                record.back_fields = self.extractor.read_back(back)
            if record.front_fields and record.back_fields:
                record.validation = cross_validate(record.front_fields, record.back_fields)

        if front is not None:
            record.face_crop = self.locator.crop_document_face(front)
            if record.face_crop is None:
                logger.warning("No portrait found on the document front")
        return record

    async def run_liveness(self, frame_source, challenge: Optional[LivenessChallenge] = None,
                           timeout: Optional[float] = None) -> LivenessResult:
        if self.tracker is None:
            raise RuntimeError("No liveness tracker configured")
        return await self.tracker.run_liveness_check(challenge or generate_challenge(), frame_source, timeout)

    def verify_identity(self,
                        document_face: Optional[np.ndarray],
                        near_selfie: np.ndarray,
                        far_selfie: np.ndarray,
                        person_fields: Optional[Dict[str, Any]] = None,
                        liveness: Optional[LivenessResult] = None,
                        crop_selfies: bool = True) -> VerificationResult:
        """
        Compare the document portrait with both selfies and decide.

        Never raises: any failure becomes a fallida result with zero scores.
        """
        if liveness is not None and not liveness.is_alive:
            return failed_result(f"Verificación de vida fallida: {liveness.failure_reason}", person_fields)

        try:
            if document_face is None:
                raise NoFaceDetectedError(MSG_NO_DOCUMENT_FACE)
            if crop_selfies:
                near = self.locator.crop_selfie_face(near_selfie)
                if near is None:
                    raise NoFaceDetectedError(MSG_NO_NEAR_FACE)
                far = self.locator.crop_selfie_face(far_selfie)
                if far is None:
                    raise NoFaceDetectedError(MSG_NO_FAR_FACE)
            else:
                near, far = near_selfie, far_selfie

            scores = self.scorer.score_triplet(document_face, near, far)
        except IdMatchError as e:
            logger.warning(f"Verification aborted [{e.error_code}]: {e.message}")
            return failed_result(f"Error: {e.message}", person_fields)
        except Exception as e:
            logger.error(f"Verification failed: {e}")
            return failed_result(f"Error: {e}", person_fields)

        profile = profile_for_strategy(scores.strategy or GEOMETRIC_STRATEGY)
        result = decide(scores.doc_vs_near, scores.doc_vs_far, scores.near_vs_far,
                        person_fields=person_fields, profile=profile)
        logger.info(f"Verification decided: match={result.is_match} tier={result.confidence.value} "
                    f"profile={profile.name} avg={result.average_score:.3f}")
        return result
