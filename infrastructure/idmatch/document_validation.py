"""
Format validators and front/back cross-validation for voter ID fields.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional

from .document_fields import (CURP_PATTERN, ELECTOR_KEY_PATTERN,
                              DocumentBackFields, DocumentFrontFields)
from .errors import InconsistentDocumentDataError

logger = logging.getLogger(__name__)

_CURP_RE = re.compile(CURP_PATTERN)
_ELECTOR_KEY_RE = re.compile(ELECTOR_KEY_PATTERN)

CURP_MISMATCH = "CURP no coincide entre frente y reverso"
ELECTOR_KEY_MISMATCH = "Clave de elector no coincide entre frente y reverso"
CONSISTENT_DESCRIPTION = "Los datos del frente y reverso coinciden"


def is_valid_curp(value: Optional[str]) -> bool:
    return bool(value) and _CURP_RE.fullmatch(value) is not None


def is_valid_elector_key(value: Optional[str]) -> bool:
    return bool(value) and _ELECTOR_KEY_RE.fullmatch(value) is not None


@dataclass
class ValidationResult:
    curp_coincide: bool
    clave_elector_coincide: bool
    mismatches: List[str] = field(default_factory=list)

    @property
    def es_valida(self) -> bool:
        return self.curp_coincide and self.clave_elector_coincide

    @property
    def mensaje_error(self) -> Optional[str]:
        return ". ".join(self.mismatches) if self.mismatches else None

    @property
    def descripcion(self) -> str:
        return self.mensaje_error or CONSISTENT_DESCRIPTION

    def to_dict(self) -> dict:
        return {
            'curp_coincide': self.curp_coincide,
            'clave_elector_coincide': self.clave_elector_coincide,
            'es_valida': self.es_valida,
            'mensaje_error': self.mensaje_error,
            'descripcion': self.descripcion,
        }


def _fields_agree(front_value: Optional[str], back_value: Optional[str]) -> bool:
    # A side that could not read the field is not evidence of a mismatch
    if not front_value or not back_value:
        return True
    return front_value == back_value


def cross_validate(front: DocumentFrontFields, back: DocumentBackFields) -> ValidationResult:
    curp_ok = _fields_agree(front.curp, back.curp)
    key_ok = _fields_agree(front.clave_elector, back.clave_elector)

    mismatches = []
    if not curp_ok:
        mismatches.append(CURP_MISMATCH)
    if not key_ok:
        mismatches.append(ELECTOR_KEY_MISMATCH)

    result = ValidationResult(curp_coincide=curp_ok, clave_elector_coincide=key_ok, mismatches=mismatches)
    if result.es_valida:
        logger.info("Front and back document data are consistent")
    else:
        logger.warning(f"Document cross-validation failed: {result.mensaje_error}")
    return result


def require_consistent(front: DocumentFrontFields, back: DocumentBackFields) -> ValidationResult:
    """Like cross_validate but raises InconsistentDocumentDataError on mismatch."""
    result = cross_validate(front, back)
    if not result.es_valida:
        raise InconsistentDocumentDataError(result.mensaje_error)
    return result
