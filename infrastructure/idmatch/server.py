"""
Identity Verification API Server
FastAPI adapter over the verification core: document extraction, face
comparison, the decision engine and passive liveness.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from . import __version__
from .decision import GEOMETRIC_PROFILE, decide, profile_for_strategy
from .document_face import DocumentFaceLocator
from .document_fields import DocumentFieldExtractor
from .errors import (IdMatchError, InconsistentDocumentDataError, InvalidImageError,
                     ModelUnavailableError, NoFaceDetectedError, NoLandmarksError,
                     ProcessingTimeoutError)
from .face_comparison import FaceSimilarityScorer
from .image_utils import load_images, resize_if_needed
from .liveness import LivenessStateTracker
from .liveness_config import create_liveness_config
from .settings import Settings, load_settings
from .verification import IdentityVerificationService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidImageError: 422,
    NoFaceDetectedError: 422,
    NoLandmarksError: 422,
    InconsistentDocumentDataError: 422,
    ModelUnavailableError: 503,
    ProcessingTimeoutError: 504,
}

# Global service instances
settings: Optional[Settings] = None
landmark_provider = None
embedding_model = None
text_recognizer = None
verification_service: Optional[IdentityVerificationService] = None


def configure_services(provider, model=None, recognizer=None,
                       app_settings: Optional[Settings] = None) -> IdentityVerificationService:
    """Wire the core around the given collaborators and publish it globally."""
    global settings, landmark_provider, embedding_model, text_recognizer, verification_service

    settings = app_settings or Settings()
    landmark_provider = provider
    embedding_model = model
    text_recognizer = recognizer

    extractor = DocumentFieldExtractor(recognizer, settings.ocr_languages) if recognizer else None
    verification_service = IdentityVerificationService(
        scorer=FaceSimilarityScorer(provider, model, max_workers=settings.max_workers),
        locator=DocumentFaceLocator(provider),
        extractor=extractor,
        tracker=LivenessStateTracker(provider, create_liveness_config(default_timeout=settings.liveness_timeout)),
    )
    return verification_service


def initialize_services(app_settings: Settings) -> IdentityVerificationService:
    """Build the MediaPipe, ONNX Runtime and Tesseract adapters."""
    from .mediapipe_landmarks import MediaPipeLandmarkProvider
    from .onnx_embedding import ArcFaceEmbeddingModel
    from .tesseract_recognizer import TesseractTextRecognizer

    provider = MediaPipeLandmarkProvider()

    model = ArcFaceEmbeddingModel(app_settings.arcface_model_path)
    if not model.available():
        logger.warning("ArcFace model unavailable, comparisons will use facial landmarks")

    recognizer = TesseractTextRecognizer(app_settings.tesseract_cmd)
    if not recognizer.available():
        logger.warning("Tesseract not found, document images cannot be read")
        recognizer = None

    return configure_services(provider, model, recognizer, app_settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize collaborators on startup unless they were injected already."""
    logger.info("Starting Identity Verification API...")
    try:
        if verification_service is None:
            initialize_services(load_settings())
        yield
    except Exception as e:
        logger.error(f"Failed to initialize application: {e}")
        raise
    finally:
        logger.info("Shutting down Identity Verification API...")


app = FastAPI(
    title="Identity Verification API",
    description="Document data extraction, face comparison and liveness for ID verification",
    version=__version__,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class HealthResponse(BaseModel):
    status: str
    timestamp: float
    models: Dict[str, bool]
    version: str = __version__


class DocumentExtractRequest(BaseModel):
    front_lines: Optional[List[str]] = Field(None, description="Recognized text lines of the card front")
    back_lines: Optional[List[str]] = Field(None, description="Recognized text lines of the card back")
    front_image: Optional[str] = Field(None, description="Card front (URL or base64)")
    back_image: Optional[str] = Field(None, description="Card back (URL or base64)")


class CompareRequest(BaseModel):
    image1: str = Field(..., description="First face image (URL or base64)")
    image2: str = Field(..., description="Second face image (URL or base64)")

    @field_validator('image1', 'image2')
    @classmethod
    def validate_image_sources(cls, v):
        if not v or not v.strip():
            raise ValueError("Image must be a non-empty string")
        return v.strip()


class CompareResponse(BaseModel):
    similarity_score: float
    strategy: str
    fell_back: bool
    processing_time: float


class VerifyRequest(BaseModel):
    document_face: str = Field(..., description="Portrait cropped from the ID (URL or base64)")
    near_selfie: str = Field(..., description="Close-up selfie (URL or base64)")
    far_selfie: str = Field(..., description="Arm's-length selfie (URL or base64)")
    person: Optional[Dict[str, Any]] = Field(None, description="Extracted document fields to pass through")
    crop_selfies: bool = Field(True, description="Crop the face out of each selfie before comparing")


class DecisionRequest(BaseModel):
    doc_vs_near: float = Field(..., ge=0.0, le=1.0)
    doc_vs_far: float = Field(..., ge=0.0, le=1.0)
    near_vs_far: float = Field(..., ge=0.0, le=1.0)
    profile: str = Field(GEOMETRIC_PROFILE.name, description="landmarks or arcface")
    person: Optional[Dict[str, Any]] = None

    @field_validator('profile')
    @classmethod
    def validate_profile(cls, v):
        profile_for_strategy(v)
        return v


class PassiveLivenessRequest(BaseModel):
    frames: List[str] = Field(..., description="Burst of frames (URL or base64)")

    @field_validator('frames')
    @classmethod
    def validate_frames(cls, v):
        if any(not frame or not frame.strip() for frame in v):
            raise ValueError("Every frame must be a non-empty string")
        return [frame.strip() for frame in v]


def raise_for_error(error: IdMatchError):
    status = ERROR_STATUS.get(type(error), 400)
    raise HTTPException(status_code=status, detail=error.to_dict())


def require_service() -> IdentityVerificationService:
    if verification_service is None:
        raise HTTPException(status_code=503, detail="Verification service not initialized")
    return verification_service


async def load_request_images(sources: List[Optional[str]]):
    max_size = settings.max_image_size if settings else 10 * 1024 * 1024
    max_dimension = settings.max_image_dimension if settings else 1280
    images = await load_images(sources, max_file_size=max_size)
    return [resize_if_needed(image, max_dimension) if image is not None else None for image in images]


@app.get("/health", response_model=HealthResponse)
async def health_check():
    models_status = {
        'landmarks': landmark_provider is not None,
        'arcface': embedding_model is not None and embedding_model.available(),
        'ocr': text_recognizer is not None,
    }
    return HealthResponse(
        status="healthy" if models_status['landmarks'] else "degraded",
        timestamp=time.time(),
        models=models_status,
    )


@app.post("/document/extract")
async def extract_document(request: DocumentExtractRequest):
    service = require_service()
    try:
        if request.front_image or request.back_image:
            if service.extractor is None:
                raise HTTPException(status_code=503, detail="Text recognizer not available")
            front, back = await load_request_images([request.front_image, request.back_image])
            record = service.process_document(front, back)
        elif request.front_lines is not None or request.back_lines is not None:
            record = service.process_document_text(request.front_lines, request.back_lines)
        else:
            raise HTTPException(status_code=400, detail="Provide document text lines or images")
        return record.to_dict()
    except IdMatchError as e:
        raise_for_error(e)


@app.post("/faces/compare", response_model=CompareResponse)
async def compare_faces(request: CompareRequest):
    service = require_service()
    try:
        image1, image2 = await load_request_images([request.image1, request.image2])
        outcome = service.scorer.compare_with_details(image1, image2)
        return CompareResponse(
            similarity_score=round(outcome.score, 4),
            strategy=outcome.strategy,
            fell_back=outcome.fell_back,
            processing_time=outcome.processing_time,
        )
    except IdMatchError as e:
        raise_for_error(e)


@app.post("/verify")
async def verify_identity(request: VerifyRequest):
    service = require_service()
    try:
        document_face, near, far = await load_request_images(
            [request.document_face, request.near_selfie, request.far_selfie])
    except IdMatchError as e:
        raise_for_error(e)
    result = service.verify_identity(document_face, near, far, request.person,
                                     crop_selfies=request.crop_selfies)
    return result.to_dict()


@app.post("/decision")
async def decide_scores(request: DecisionRequest):
    result = decide(request.doc_vs_near, request.doc_vs_far, request.near_vs_far,
                    person_fields=request.person, profile=profile_for_strategy(request.profile))
    return result.to_dict()


@app.post("/liveness/passive")
async def passive_liveness(request: PassiveLivenessRequest):
    service = require_service()
    try:
        frames = await load_request_images(request.frames)
        return service.tracker.quick_liveness_check(frames).to_dict()
    except IdMatchError as e:
        raise_for_error(e)


def run_server(host: str = "0.0.0.0", port: int = 8000, debug: bool = False):
    """Run the FastAPI server."""
    uvicorn.run(
        "idmatch.server:app",
        host=host,
        port=port,
        reload=debug,
        log_level="info"
    )
