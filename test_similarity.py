#!/usr/bin/env python3
"""
Tests for cosine similarity, deep score rescaling and the geometric embedding.
"""

import sys
import os
import logging
import math

import numpy as np
import pytest

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from idmatch.errors import NoLandmarksError
from idmatch.geometric_embedding import (FacialEmbedding, angle_between,
                                         compare_landmarks, compare_scalars,
                                         extract_embedding)
from idmatch.providers import BoundingBox, FaceObservation
from idmatch.similarity import DeepEmbedding, cosine_similarity, rescale_deep_cosine
from face_fixtures import make_face

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def test_cosine_is_symmetric():
    rng = np.random.default_rng(7)
    for _ in range(20):
        a, b = rng.normal(size=512), rng.normal(size=512)
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_degenerate_inputs():
    assert cosine_similarity([], []) == 0.0
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [2.0, 4.0]) == pytest.approx(1.0)


def test_rescale_clamps_to_unit_range():
    assert rescale_deep_cosine(0.2) == 0.0
    assert rescale_deep_cosine(1.0) == 1.0
    assert rescale_deep_cosine(-1.0) == 0.0
    assert rescale_deep_cosine(0.6) == pytest.approx(0.5)
    for cos in np.linspace(-1.0, 1.0, 41):
        assert 0.0 <= rescale_deep_cosine(cos) <= 1.0


def test_deep_embedding_similarity():
    a = DeepEmbedding(np.array([1.0, 0.0, 0.0]))
    b = DeepEmbedding(np.array([0.0, 1.0, 0.0]))
    assert a.dimension == 3
    assert a.similarity(a) == pytest.approx(1.0)
    assert a.similarity(b) == 0.0


def test_angle_between_is_signed():
    assert angle_between((1.0, 0.0), (0.0, 0.0), (0.0, 1.0)) == pytest.approx(math.pi / 2)
    assert angle_between((0.0, 1.0), (0.0, 0.0), (1.0, 0.0)) == pytest.approx(-math.pi / 2)


def test_scalar_and_landmark_agreement():
    assert compare_scalars({'a': 1.0}, {'b': 1.0}) == 0.0
    assert compare_scalars({'a': 1.0, 'b': 2.0}, {'a': 1.0, 'b': 2.0}) == pytest.approx(1.0)
    assert compare_scalars({'a': 1.0}, {'a': 0.5}) == pytest.approx(0.5)
    assert compare_landmarks({'p': (0.0, 0.0)}, {'q': (0.0, 0.0)}) == 0.0
    assert compare_landmarks({'p': (0.0, 0.0)}, {'p': (0.1, 0.0)}) == pytest.approx(0.5)
    # Outliers are capped, the score never goes negative
    assert compare_landmarks({'p': (0.0, 0.0)}, {'p': (5.0, 5.0)}) == 0.0


def test_embedding_contents():
    embedding = extract_embedding(make_face())
    for key in ("leftEyeCenter", "rightEyeCenter", "noseCenter", "noseTip", "noseCrest",
                "mouthCenter", "mouthLeft", "mouthRight", "leftEyebrowCenter",
                "rightEyebrowCenter", "chin", "jawLeft", "jawRight"):
        assert key in embedding.landmarks
    assert set(embedding.angles) == {"eyeNoseAngle", "eyeMouthAngle", "noseMouthChinAngle"}
    assert embedding.proportions["interocularDistance"] == pytest.approx(0.4)
    assert embedding.proportions["eyeNoseSymmetry"] == pytest.approx(1.0)
    assert embedding.landmarks["chin"] == pytest.approx((0.5, 1.0))


def test_embedding_is_scale_and_position_invariant():
    small = extract_embedding(make_face(x=0.1, y=0.1, width=0.2, height=0.25))
    large = extract_embedding(make_face(x=0.3, y=0.2, width=0.6, height=0.75))
    assert small.similarity(large) == pytest.approx(1.0)


def test_different_geometry_scores_lower():
    reference = extract_embedding(make_face())
    same = extract_embedding(make_face(mouth_curvature=0.12))
    other = extract_embedding(make_face(eye_spacing=0.3, mouth_width=0.25, jaw_drop=0.85))
    assert reference.similarity(same) > reference.similarity(other)
    assert 0.0 <= reference.similarity(other) <= 1.0


def test_partial_landmarks_still_compare():
    eyes_only = extract_embedding(make_face(regions=["left_eye", "right_eye"]))
    assert set(eyes_only.proportions) == {"interocularDistance"}
    assert eyes_only.angles == {}
    assert eyes_only.similarity(extract_embedding(make_face())) > 0.0


def test_no_landmarks_raises():
    with pytest.raises(NoLandmarksError):
        extract_embedding(FaceObservation(bounding_box=BoundingBox(0.2, 0.2, 0.5, 0.5)))


def test_empty_embeddings_score_zero():
    assert FacialEmbedding().similarity(FacialEmbedding()) == 0.0


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
