#!/usr/bin/env python3
"""
End-to-end tests for the identity verification service using fake
landmark, embedding and text recognition collaborators.
"""

import sys
import os
import asyncio
import logging

import pytest

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from idmatch.decision import ConfidenceTier
from idmatch.document_face import DocumentFaceLocator
from idmatch.document_fields import DocumentFieldExtractor
from idmatch.face_comparison import FaceSimilarityScorer
from idmatch.liveness import LivenessChallenge, LivenessResult, LivenessStateTracker
from idmatch.liveness_config import LivenessConfig
from idmatch.verification import IdentityVerificationService
from face_fixtures import (BACK_LINES, CLOSED_EYE, FRONT_LINES, FakeEmbeddingModel,
                           FakeLandmarkProvider, FakeTextRecognizer,
                           SequenceLandmarkProvider, make_face, tagged_image)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

CARD_FRONT, CARD_BACK, NEAR, FAR, EMPTY = 20, 21, 30, 31, 40

PORTRAIT = make_face(x=0.2, y=0.25, width=0.25, height=0.4)
GHOST = make_face(x=0.75, y=0.5, width=0.1, height=0.15)

FACES = {
    CARD_FRONT: [PORTRAIT, GHOST],
    NEAR: make_face(),
    FAR: make_face(x=0.35, y=0.3, width=0.3, height=0.36),
}


def make_service(model=None, faces=None):
    provider = FakeLandmarkProvider(faces or FACES)
    return IdentityVerificationService(
        scorer=FaceSimilarityScorer(provider, model),
        locator=DocumentFaceLocator(provider),
        extractor=DocumentFieldExtractor(FakeTextRecognizer({CARD_FRONT: FRONT_LINES, CARD_BACK: BACK_LINES})),
    )


def card(tag):
    return tagged_image(tag, size=400)


def test_process_document():
    record = make_service().process_document(card(CARD_FRONT), card(CARD_BACK))
    assert record.front_fields.nombre == "GARCIA RODRIGUEZ JUAN"
    assert record.back_fields.emision == "03"
    assert record.validation.es_valida
    assert record.face_crop is not None
    assert record.to_dict()['face_detected'] is True
    assert record.person_fields['estado'] == "Ciudad de México"


def test_process_document_text_only():
    record = make_service().process_document_text(FRONT_LINES, ["GARC850101HDFRRL08"])
    assert record.validation.curp_coincide is False
    assert record.face_crop is None


def test_verify_identity_geometric():
    service = make_service()
    record = service.process_document(card(CARD_FRONT), card(CARD_BACK))
    result = service.verify_identity(record.face_crop, card(NEAR), card(FAR), record.person_fields)
    assert result.is_match
    assert result.confidence is ConfidenceTier.ALTA
    assert result.profile == "landmarks"
    assert result.person_fields['curp'] == "GARC850101HDFRRL09"


def test_verify_identity_deep_profile():
    model = FakeEmbeddingModel({CARD_FRONT: [1.0, 0.0, 0.0], NEAR: [1.0, 0.05, 0.0], FAR: [1.0, 0.0, 0.05]})
    service = make_service(model)
    record = service.process_document(card(CARD_FRONT))
    result = service.verify_identity(record.face_crop, card(NEAR), card(FAR))
    assert result.profile == "arcface"
    assert result.confidence is ConfidenceTier.ALTA


def test_inconsistent_selfies_fail():
    model = FakeEmbeddingModel({CARD_FRONT: [1.0, 0.0, 0.0], NEAR: [1.0, 0.0, 0.0], FAR: [0.0, 1.0, 0.0]})
    service = make_service(model)
    record = service.process_document(card(CARD_FRONT))
    result = service.verify_identity(record.face_crop, card(NEAR), card(FAR))
    assert result.confidence is ConfidenceTier.FALLIDA
    assert "selfies" in result.message


def test_missing_document_face_becomes_failed_result():
    result = make_service().verify_identity(None, card(NEAR), card(FAR), {'nombre': 'X'})
    assert result.is_match is False
    assert result.confidence is ConfidenceTier.FALLIDA
    assert result.message == "Error: No se detectó rostro en la fotografía de la INE"
    assert (result.doc_vs_near, result.doc_vs_far, result.near_vs_far) == (0.0, 0.0, 0.0)
    assert result.person_fields == {'nombre': 'X'}


def test_selfie_without_face_becomes_failed_result():
    service = make_service()
    record = service.process_document(card(CARD_FRONT))
    result = service.verify_identity(record.face_crop, card(EMPTY), card(FAR))
    assert result.message == "Error: No se detectó rostro en la selfie cercana"


def test_failed_liveness_short_circuits():
    liveness = LivenessResult(is_alive=False, confidence=0.0, failure_reason="tiempo agotado")
    result = make_service().verify_identity(None, card(NEAR), card(FAR), liveness=liveness)
    assert result.message == "Verificación de vida fallida: tiempo agotado"


def test_document_without_portrait():
    record = make_service(faces={CARD_FRONT: [GHOST]}).process_document(card(CARD_FRONT))
    assert record.face_crop is None


def test_run_liveness_through_service():
    closed = make_face(left_eye=CLOSED_EYE, right_eye=CLOSED_EYE)
    service = make_service()
    service.tracker = LivenessStateTracker(SequenceLandmarkProvider([make_face(), closed]),
                                           LivenessConfig(poll_interval=0.001))
    result = asyncio.run(service.run_liveness(lambda: card(NEAR), LivenessChallenge.BLINK, timeout=2.0))
    assert result.is_alive


def test_run_liveness_requires_tracker():
    with pytest.raises(RuntimeError):
        asyncio.run(make_service().run_liveness(lambda: None))


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
