"""
Facial Similarity Scorer
Compares two face images with a deep-embedding strategy when a model is
available and a geometric landmark strategy otherwise, or when the deep
path fails for a given pair.
"""

import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .errors import NoFaceDetectedError
from .face_alignment import align_face, ensure_image
from .geometric_embedding import FacialEmbedding, extract_embedding
from .providers import DeepEmbeddingModel, FaceLandmarkProvider
from .similarity import DeepEmbedding

logger = logging.getLogger(__name__)

DEEP_STRATEGY = "arcface"
GEOMETRIC_STRATEGY = "landmarks"


class ScoringStrategy(ABC):
    name = ""

    def available(self) -> bool:
        return True

    @abstractmethod
    def compare(self, image_a: np.ndarray, image_b: np.ndarray) -> float:
        """Similarity score in [0, 1]."""


class DeepEmbeddingStrategy(ScoringStrategy):
    name = DEEP_STRATEGY

    def __init__(self, landmark_provider: FaceLandmarkProvider, model: DeepEmbeddingModel):
        self.landmark_provider = landmark_provider
        self.model = model

    def available(self) -> bool:
        return self.model is not None and self.model.available()

    def embedding(self, image: np.ndarray) -> DeepEmbedding:
        image = ensure_image(image)
        face = self.landmark_provider.detect(image)
        if face is None:
            raise NoFaceDetectedError()
        aligned = align_face(image, face, getattr(self.model, 'input_size', 112))
        if aligned is None:
            raise NoFaceDetectedError()
        return DeepEmbedding(vector=np.asarray(self.model.embed(aligned), dtype=np.float32))

    def compare(self, image_a: np.ndarray, image_b: np.ndarray) -> float:
        return self.embedding(image_a).similarity(self.embedding(image_b))


class GeometricLandmarkStrategy(ScoringStrategy):
    name = GEOMETRIC_STRATEGY

    def __init__(self, landmark_provider: FaceLandmarkProvider):
        self.landmark_provider = landmark_provider

    def embedding(self, image: np.ndarray) -> FacialEmbedding:
        image = ensure_image(image)
        face = self.landmark_provider.detect(image)
        if face is None:
            raise NoFaceDetectedError()
        return extract_embedding(face)

    def compare(self, image_a: np.ndarray, image_b: np.ndarray) -> float:
        return self.embedding(image_a).similarity(self.embedding(image_b))


@dataclass
class ComparisonOutcome:
    score: float
    strategy: str
    fell_back: bool = False
    processing_time: float = 0.0


@dataclass
class TripletScores:
    doc_vs_near: float
    doc_vs_far: float
    near_vs_far: float
    strategy: str


class FaceSimilarityScorer:
    """Stateless scorer; safe to call from several threads at once."""

    def __init__(self,
                 landmark_provider: FaceLandmarkProvider,
                 embedding_model: Optional[DeepEmbeddingModel] = None,
                 max_workers: int = 3):
        self.geometric = GeometricLandmarkStrategy(landmark_provider)
        self.deep = DeepEmbeddingStrategy(landmark_provider, embedding_model) if embedding_model else None
        self.max_workers = max_workers

    @property
    def deep_available(self) -> bool:
        return self.deep is not None and self.deep.available()

    def compare_with_details(self, image_a: np.ndarray, image_b: np.ndarray) -> ComparisonOutcome:
        start_time = time.time()
        fell_back = False

        if self.deep_available:
            try:
                score = self.deep.compare(image_a, image_b)
                return ComparisonOutcome(score, DEEP_STRATEGY, False, time.time() - start_time)
            except Exception as e:
                logger.warning(f"Deep comparison failed, using landmarks: {e}")
                fell_back = True

        score = self.geometric.compare(image_a, image_b)
        return ComparisonOutcome(score, GEOMETRIC_STRATEGY, fell_back, time.time() - start_time)

    def compare_faces(self, image_a: np.ndarray, image_b: np.ndarray) -> float:
        return self.compare_with_details(image_a, image_b).score

    def score_triplet(self, document_face: np.ndarray, near_selfie: np.ndarray,
                      far_selfie: np.ndarray) -> TripletScores:
        """Score doc-vs-near, doc-vs-far and near-vs-far concurrently."""
        pairs = [(document_face, near_selfie), (document_face, far_selfie), (near_selfie, far_selfie)]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self.compare_with_details, a, b) for a, b in pairs]
            outcomes = [future.result() for future in futures]

        if all(outcome.strategy == DEEP_STRATEGY for outcome in outcomes):
            strategy = DEEP_STRATEGY
        else:
            # Scores from the two strategies live on different scales
            strategy = GEOMETRIC_STRATEGY
            for index, (a, b) in enumerate(pairs):
                if outcomes[index].strategy == DEEP_STRATEGY:
                    outcomes[index] = ComparisonOutcome(self.geometric.compare(a, b), GEOMETRIC_STRATEGY, True)

        scores = TripletScores(
            doc_vs_near=outcomes[0].score,
            doc_vs_far=outcomes[1].score,
            near_vs_far=outcomes[2].score,
            strategy=strategy,
        )
        logger.info(f"Triplet scores ({strategy}): doc-near={scores.doc_vs_near:.3f} "
                    f"doc-far={scores.doc_vs_far:.3f} near-far={scores.near_vs_far:.3f}")
        return scores
