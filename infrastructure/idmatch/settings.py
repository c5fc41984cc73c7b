"""
Process-level settings read from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .document_fields import DEFAULT_LANGUAGE_HINTS
from .liveness_config import MAX_CHALLENGE_SECONDS


@dataclass
class Settings:
    arcface_model_path: Optional[str] = None
    tesseract_cmd: Optional[str] = None
    ocr_languages: List[str] = field(default_factory=lambda: list(DEFAULT_LANGUAGE_HINTS))
    liveness_timeout: float = 10.0
    max_workers: int = 3
    max_image_size: int = 10 * 1024 * 1024
    max_image_dimension: int = 1280
    host: str = "0.0.0.0"
    port: int = 8000

    def __post_init__(self):
        if not (0 < self.liveness_timeout <= MAX_CHALLENGE_SECONDS):
            raise ValueError(f"liveness_timeout must be in (0, {MAX_CHALLENGE_SECONDS}]")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.max_image_size <= 0:
            raise ValueError("max_image_size must be positive")


def load_settings() -> Settings:
    languages = os.getenv('IDMATCH_OCR_LANGUAGES')
    return Settings(
        arcface_model_path=os.getenv('IDMATCH_ARCFACE_MODEL_PATH', 'models/arcface_mobilefacenet.onnx'),
        tesseract_cmd=os.getenv('IDMATCH_TESSERACT_CMD') or None,
        ocr_languages=[lang.strip() for lang in languages.split(',') if lang.strip()]
        if languages else list(DEFAULT_LANGUAGE_HINTS),
        liveness_timeout=float(os.getenv('IDMATCH_LIVENESS_TIMEOUT', '10')),
        max_workers=int(os.getenv('IDMATCH_MAX_WORKERS', '3')),
        max_image_size=int(os.getenv('IDMATCH_MAX_IMAGE_SIZE', str(10 * 1024 * 1024))),
        max_image_dimension=int(os.getenv('IDMATCH_MAX_IMAGE_DIMENSION', '1280')),
        host=os.getenv('IDMATCH_HOST', '0.0.0.0'),
        port=int(os.getenv('IDMATCH_PORT', '8000')),
    )
