"""
IdMatch - identity verification core.

Liveness challenges, face similarity scoring, the verification decision
engine and voter ID field extraction. Platform adapters (MediaPipe,
ONNX Runtime, Tesseract) and the HTTP server live in their own modules
and are imported on demand.
"""

__version__ = "1.0.0"

from .decision import (DEEP_PROFILE, GEOMETRIC_PROFILE, ConfidenceTier,
                       ThresholdProfile, VerificationResult, decide,
                       profile_for_strategy)
from .document_fields import (DocumentBackFields, DocumentFieldExtractor,
                              DocumentFrontFields, extract_back, extract_front)
from .document_validation import (ValidationResult, cross_validate,
                                  is_valid_curp, is_valid_elector_key)
from .errors import (IdMatchError, InconsistentDocumentDataError,
                     InvalidImageError, ModelUnavailableError,
                     NoFaceDetectedError, NoLandmarksError,
                     ProcessingTimeoutError)
from .face_comparison import FaceSimilarityScorer
from .liveness import (FaceState, LivenessChallenge, LivenessResult,
                       LivenessStateTracker, generate_challenge)
from .providers import BoundingBox, FaceObservation
