#!/usr/bin/env python3
"""
Tests for the verification decision engine and its threshold profiles.
"""

import sys
import os
import logging

import pytest

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from idmatch.decision import (DEEP_PROFILE, GEOMETRIC_PROFILE, ConfidenceTier,
                              ThresholdProfile, decide, profile_for_strategy)

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def test_high_scores_give_alta():
    result = decide(0.85, 0.82, 0.95)
    assert result.is_match is True
    assert result.confidence is ConfidenceTier.ALTA
    assert result.average_score == pytest.approx(0.835)


def test_moderate_scores_give_media():
    result = decide(0.68, 0.65, 0.90)
    assert result.is_match is True
    assert result.confidence is ConfidenceTier.MEDIA


def test_baja_band_is_not_a_match():
    result = decide(0.55, 0.52, 0.85)
    assert result.is_match is False
    assert result.confidence is ConfidenceTier.BAJA


def test_inconsistent_selfies_fail_before_document_scores():
    result = decide(0.80, 0.78, 0.40)
    assert result.is_match is False
    assert result.confidence is ConfidenceTier.FALLIDA
    assert "selfies" in result.message


def test_below_baja_band_is_fallida():
    result = decide(0.45, 0.90, 0.90)
    assert result.confidence is ConfidenceTier.FALLIDA
    assert result.message == GEOMETRIC_PROFILE.floor_message


def test_deep_profile_tiers():
    assert decide(0.70, 0.66, 0.80, profile=DEEP_PROFILE).confidence is ConfidenceTier.ALTA
    assert decide(0.55, 0.52, 0.80, profile=DEEP_PROFILE).confidence is ConfidenceTier.MEDIA

    below_floor = decide(0.49, 0.90, 0.80, profile=DEEP_PROFILE)
    assert below_floor.confidence is ConfidenceTier.FALLIDA
    assert below_floor.message == DEEP_PROFILE.floor_message

    # Stricter selfie gate than the geometric profile
    assert decide(0.90, 0.90, 0.65, profile=DEEP_PROFILE).confidence is ConfidenceTier.FALLIDA
    assert decide(0.90, 0.90, 0.65).confidence is ConfidenceTier.ALTA


def test_decision_is_deterministic_and_passes_person_fields():
    person = {'nombre': 'GARCIA RODRIGUEZ JUAN'}
    first = decide(0.75, 0.72, 0.88, person_fields=person)
    second = decide(0.75, 0.72, 0.88, person_fields=person)
    assert first == second
    assert first.person_fields == person


def test_out_of_range_scores_are_clamped():
    result = decide(1.5, 1.2, float('nan'))
    assert result.doc_vs_near == 1.0
    assert result.near_vs_far == 0.0
    assert result.confidence is ConfidenceTier.FALLIDA


def test_tier_ordering():
    assert ConfidenceTier.FALLIDA < ConfidenceTier.BAJA < ConfidenceTier.MEDIA < ConfidenceTier.ALTA
    assert max([ConfidenceTier.MEDIA, ConfidenceTier.ALTA, ConfidenceTier.BAJA]) is ConfidenceTier.ALTA


def test_profile_lookup_and_validation():
    assert profile_for_strategy("arcface") is DEEP_PROFILE
    assert profile_for_strategy("landmarks") is GEOMETRIC_PROFILE
    with pytest.raises(ValueError):
        profile_for_strategy("unknown")
    with pytest.raises(ValueError):
        ThresholdProfile(name="bad", consistency_threshold=0.5, floor_threshold=0.5,
                         alta_threshold=0.4, media_threshold=0.6)


def test_result_serialization():
    data = decide(0.85, 0.82, 0.95).to_dict()
    assert data['confidence'] == "alta"
    assert data['profile'] == "landmarks"
    assert data['average_score'] == pytest.approx(0.835)


def main():
    tests = [value for name, value in sorted(globals().items()) if name.startswith('test_') and callable(value)]
    failed = 0
    for test in tests:
        try:
            test()
            logger.info(f"{test.__name__}: PASSED")
        except AssertionError as e:
            failed += 1
            logger.error(f"{test.__name__}: FAILED {e}")
    logger.info(f"{len(tests) - failed}/{len(tests)} decision tests passed")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
