#!/usr/bin/env python3
"""
Tests for image loading, settings and the ONNX / Tesseract adapters that
can run without model files or a Tesseract install.
"""

import sys
import os
import io
import base64
import asyncio
import logging

import numpy as np
import pytest
from PIL import Image

# Add the infrastructure directory to the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), 'infrastructure'))

from idmatch.errors import InvalidImageError, ModelUnavailableError
from idmatch.image_utils import load_from_base64, load_images, resize_if_needed
from idmatch.onnx_embedding import ArcFaceEmbeddingModel
from idmatch.settings import Settings, load_settings
from idmatch.tesseract_recognizer import TesseractTextRecognizer, tesseract_languages
from face_fixtures import image_tag, tagged_image

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def png_base64(tag: int = 77, size: int = 32) -> str:
    buffer = io.BytesIO()
    Image.fromarray(tagged_image(tag, size)).save(buffer, format='PNG')
    return base64.b64encode(buffer.getvalue()).decode('ascii')


class TestImageLoading:
    def test_plain_base64(self):
        image = load_from_base64(png_base64())
        assert image.shape == (32, 32, 3)
        assert image_tag(image) == 77

    def test_data_uri(self):
        image = load_from_base64("data:image/png;base64," + png_base64(12))
        assert image_tag(image) == 12

    def test_oversized_payload(self):
        with pytest.raises(InvalidImageError):
            load_from_base64(png_base64(), max_file_size=10)

    def test_undecodable_bytes(self):
        with pytest.raises(InvalidImageError):
            load_from_base64(base64.b64encode(b"plain text, no pixels here").decode('ascii'))

    def test_resize_keeps_aspect(self):
        image = np.zeros((1000, 2000, 3), dtype=np.uint8)
        assert resize_if_needed(image, 1280).shape == (640, 1280, 3)

    def test_small_images_untouched(self):
        image = tagged_image(5, 100)
        assert resize_if_needed(image, 1280) is image

    def test_load_images_keeps_missing_slots(self):
        images = asyncio.run(load_images([png_base64(40), None]))
        assert image_tag(images[0]) == 40
        assert images[1] is None


class TestSettings:
    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('IDMATCH_OCR_LANGUAGES', 'es-MX, en-US')
        monkeypatch.setenv('IDMATCH_MAX_WORKERS', '5')
        monkeypatch.setenv('IDMATCH_MAX_IMAGE_DIMENSION', '640')
        settings = load_settings()
        assert settings.ocr_languages == ['es-MX', 'en-US']
        assert settings.max_workers == 5
        assert settings.max_image_dimension == 640

    def test_liveness_timeout_is_capped(self):
        with pytest.raises(ValueError):
            Settings(liveness_timeout=20.0)

    def test_workers_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(max_workers=0)


class TestArcFaceModel:
    def test_missing_model_is_unavailable(self):
        model = ArcFaceEmbeddingModel("/nonexistent/arcface.onnx")
        assert not model.available()
        with pytest.raises(ModelUnavailableError):
            model.embed(tagged_image(1, 112))

    def test_preprocess_scales_to_signed_unit_range(self):
        model = ArcFaceEmbeddingModel(None)
        tensor = model.preprocess(tagged_image(255, 80))
        assert tensor.shape == (1, 3, 112, 112)
        assert tensor.dtype == np.float32
        assert np.allclose(tensor, 1.0)


class TestTesseract:
    def test_language_hints(self):
        assert tesseract_languages(['es-MX', 'en', 'es', 'xx']) == "spa+eng"
        assert tesseract_languages([]) == "spa"

    def test_preprocess_doubles_resolution(self):
        recognizer = TesseractTextRecognizer()
        binary = recognizer.preprocess(tagged_image(200, 50))
        assert binary.shape == (100, 100)
        assert set(np.unique(binary)) <= {0, 255}


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
