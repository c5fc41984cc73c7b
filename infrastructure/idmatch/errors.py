"""
Error types raised by the identity-verification core.
Every error carries a stable error code and a message that can be shown to the user.
"""

from typing import Optional


class IdMatchError(Exception):
    """Base class for recoverable verification errors."""

    error_code = "IDMATCH_ERROR"
    default_message = "Error en la verificación"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'error': self.message, 'error_code': self.error_code}


class InvalidImageError(IdMatchError):
    error_code = "INVALID_IMAGE"
    default_message = "La imagen no es válida"


class NoFaceDetectedError(IdMatchError):
    error_code = "NO_FACE_DETECTED"
    default_message = "No se detectó rostro en la imagen"


class NoLandmarksError(IdMatchError):
    error_code = "NO_LANDMARKS"
    default_message = "No se pudieron extraer características faciales"


class ModelUnavailableError(IdMatchError):
    error_code = "MODEL_UNAVAILABLE"
    default_message = "El modelo de reconocimiento facial no está disponible"


class ProcessingTimeoutError(IdMatchError):
    error_code = "PROCESSING_TIMEOUT"
    default_message = "Se agotó el tiempo para completar la verificación"


class InconsistentDocumentDataError(IdMatchError):
    error_code = "INCONSISTENT_DOCUMENT_DATA"
    default_message = "Los datos del documento no son consistentes"
