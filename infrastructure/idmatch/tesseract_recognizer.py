"""
Text recognizer backed by Tesseract via pytesseract.
"""

import logging
from typing import List, Optional

import cv2
import numpy as np
import pytesseract

logger = logging.getLogger(__name__)

# Tesseract language packs for BCP-47 style hints
LANGUAGE_MAP = {
    "es": "spa",
    "es-mx": "spa",
    "en": "eng",
    "en-us": "eng",
}


def tesseract_languages(language_hints: List[str]) -> str:
    codes = []
    for hint in language_hints:
        code = LANGUAGE_MAP.get(hint.lower())
        if code and code not in codes:
            codes.append(code)
    return "+".join(codes) or "spa"


class TesseractTextRecognizer:
    def __init__(self, tesseract_cmd: Optional[str] = None, page_segmentation_mode: int = 6):
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        # PSM 6 keeps the line-by-line structure of ID cards
        self.config = f'--oem 3 --psm {page_segmentation_mode}'

    def available(self) -> bool:
        try:
            pytesseract.get_tesseract_version()
            return True
        except pytesseract.TesseractNotFoundError:
            return False

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY) if image.ndim == 3 else image
        denoised = cv2.bilateralFilter(gray, 9, 75, 75)
        rescaled = cv2.resize(denoised, None, fx=2, fy=2, interpolation=cv2.INTER_CUBIC)
        return cv2.adaptiveThreshold(rescaled, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
                                     cv2.THRESH_BINARY, 11, 2)

    def recognize(self, image: np.ndarray, language_hints: List[str]) -> List[str]:
        lang = tesseract_languages(language_hints)
        raw_text = pytesseract.image_to_string(self.preprocess(image), lang=lang, config=self.config)
        lines = [line.strip() for line in raw_text.split('\n') if line.strip()]
        logger.info(f"Tesseract ({lang}) recognized {len(lines)} lines")
        return lines
