"""
Verification Decision Engine
Maps the three pairwise similarity scores of a verification attempt to a
match flag, an ordered confidence tier and a user-facing message.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ConfidenceTier(Enum):
    FALLIDA = "fallida"
    BAJA = "baja"
    MEDIA = "media"
    ALTA = "alta"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, ConfidenceTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, ConfidenceTier):
            return NotImplemented
        return self.rank <= other.rank


_TIER_ORDER = [ConfidenceTier.FALLIDA, ConfidenceTier.BAJA, ConfidenceTier.MEDIA, ConfidenceTier.ALTA]


@dataclass(frozen=True)
class ThresholdProfile:
    """Thresholds and messages for one scoring regime."""

    name: str
    consistency_threshold: float
    floor_threshold: float
    alta_threshold: float
    media_threshold: float
    # Lower edge of the non-matching "baja" band; None disables the band
    baja_threshold: Optional[float] = None

    inconsistent_message: str = "Las selfies no parecen ser de la misma persona. Por favor, repite la verificación."
    floor_message: str = "No hay coincidencia suficiente entre las imágenes"
    baja_message: str = "Coincidencia baja con la fotografía de la INE. No es posible confirmar la identidad."
    media_message: str = "Coincidencia moderada con la fotografía de la INE"
    alta_message: str = "Alta coincidencia con la fotografía de la INE"

    def __post_init__(self):
        for value in (self.consistency_threshold, self.floor_threshold,
                      self.alta_threshold, self.media_threshold):
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"Profile '{self.name}' thresholds must be within [0, 1]")
        if self.media_threshold > self.alta_threshold:
            raise ValueError("media_threshold must be <= alta_threshold")
        if self.baja_threshold is not None and self.baja_threshold > self.floor_threshold:
            raise ValueError("baja_threshold must be <= floor_threshold")


GEOMETRIC_PROFILE = ThresholdProfile(
    name="landmarks",
    consistency_threshold=0.60,
    floor_threshold=0.60,
    alta_threshold=0.70,
    media_threshold=0.60,
    baja_threshold=0.50,
)

DEEP_PROFILE = ThresholdProfile(
    name="arcface",
    consistency_threshold=0.70,
    floor_threshold=0.50,
    alta_threshold=0.65,
    media_threshold=0.50,
    floor_message="El rostro de las selfies no coincide con la fotografía de la INE",
    media_message="Coincidencia moderada con la fotografía de la INE. Se recomienda verificación adicional.",
    alta_message="Alta coincidencia verificada con la fotografía de la INE",
)

_PROFILES = {
    GEOMETRIC_PROFILE.name: GEOMETRIC_PROFILE,
    DEEP_PROFILE.name: DEEP_PROFILE,
}


def profile_for_strategy(strategy_name: str) -> ThresholdProfile:
    """Return the threshold profile calibrated for a scoring strategy."""
    try:
        return _PROFILES[strategy_name]
    except KeyError:
        raise ValueError(f"Unknown scoring strategy: {strategy_name}")


@dataclass(frozen=True)
class VerificationResult:
    is_match: bool
    confidence: ConfidenceTier
    doc_vs_near: float
    doc_vs_far: float
    near_vs_far: float
    message: str
    person_fields: Optional[Dict[str, Any]] = None
    profile: str = GEOMETRIC_PROFILE.name

    @property
    def average_score(self) -> float:
        return (self.doc_vs_near + self.doc_vs_far) / 2.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['confidence'] = self.confidence.value
        data['average_score'] = self.average_score
        return data


def _clamp(value: float) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if value != value:  # NaN
        return 0.0
    return max(0.0, min(1.0, value))


def decide(doc_vs_near: float,
           doc_vs_far: float,
           near_vs_far: float,
           person_fields: Optional[Dict[str, Any]] = None,
           profile: ThresholdProfile = GEOMETRIC_PROFILE) -> VerificationResult:
    """
    Decide whether the selfie subject is the document holder.

    Rules are applied in order: selfie consistency gate, document floor
    gate (with the optional baja band), then tiering on the average of the
    two document scores. Scores outside [0, 1] are clamped first.
    """
    doc_vs_near = _clamp(doc_vs_near)
    doc_vs_far = _clamp(doc_vs_far)
    near_vs_far = _clamp(near_vs_far)

    def result(is_match: bool, tier: ConfidenceTier, message: str) -> VerificationResult:
        return VerificationResult(
            is_match=is_match,
            confidence=tier,
            doc_vs_near=doc_vs_near,
            doc_vs_far=doc_vs_far,
            near_vs_far=near_vs_far,
            message=message,
            person_fields=dict(person_fields) if person_fields else None,
            profile=profile.name,
        )

    if near_vs_far < profile.consistency_threshold:
        return result(False, ConfidenceTier.FALLIDA, profile.inconsistent_message)

    lowest_doc = min(doc_vs_near, doc_vs_far)
    if lowest_doc < profile.floor_threshold:
        if profile.baja_threshold is not None and lowest_doc >= profile.baja_threshold:
            return result(False, ConfidenceTier.BAJA, profile.baja_message)
        return result(False, ConfidenceTier.FALLIDA, profile.floor_message)

    average = (doc_vs_near + doc_vs_far) / 2.0
    if average >= profile.alta_threshold:
        return result(True, ConfidenceTier.ALTA, profile.alta_message)
    if average >= profile.media_threshold:
        return result(True, ConfidenceTier.MEDIA, profile.media_message)
    # Only reachable when a profile sets media above its floor
    return result(False, ConfidenceTier.FALLIDA, profile.floor_message)
