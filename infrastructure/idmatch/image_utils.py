"""
Image Utilities Module
Decodes image inputs (base64, data URIs, raw bytes, http(s) URLs) into RGB
numpy arrays. Every failure surfaces as InvalidImageError.
"""

import asyncio
import base64
import binascii
import io
import logging
import time
from typing import List, Optional

import aiohttp
import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from .errors import InvalidImageError, ProcessingTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
IMAGE_CONTENT_TYPES = ('image/', 'jpeg', 'jpg', 'png', 'bmp', 'webp')


def is_url(text: str) -> bool:
    return text.startswith(('http://', 'https://'))


def bytes_to_array(image_bytes: bytes) -> np.ndarray:
    """Decode encoded image bytes into an RGB array."""
    try:
        pil_image = Image.open(io.BytesIO(image_bytes))
        if pil_image.mode != 'RGB':
            pil_image = pil_image.convert('RGB')
        return np.array(pil_image)
    except (UnidentifiedImageError, OSError):
        pass

    decoded = cv2.imdecode(np.frombuffer(image_bytes, np.uint8), cv2.IMREAD_COLOR)
    if decoded is None:
        raise InvalidImageError()
    return cv2.cvtColor(decoded, cv2.COLOR_BGR2RGB)


def load_from_base64(data: str, max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> np.ndarray:
    """Decode base64 image data, with or without a data URL prefix."""
    if data.startswith('data:'):
        # data:image/jpeg;base64,/9j/4AAQ...
        _, data = data.split(',', 1)
    try:
        image_bytes = base64.b64decode(data, validate=False)
    except (binascii.Error, ValueError):
        raise InvalidImageError()
    if not image_bytes:
        raise InvalidImageError()
    if len(image_bytes) > max_file_size:
        raise InvalidImageError(f"La imagen excede el tamaño máximo ({max_file_size} bytes)")
    return bytes_to_array(image_bytes)


def resize_if_needed(image: np.ndarray, max_dimension: int = 1280) -> np.ndarray:
    height, width = image.shape[:2]
    if max(height, width) <= max_dimension:
        return image
    scale = max_dimension / max(height, width)
    return cv2.resize(image, (int(width * scale), int(height * scale)), interpolation=cv2.INTER_AREA)


class ImageLoader:
    """Async image loader for URLs and base64 data."""

    def __init__(self, max_file_size: int = DEFAULT_MAX_FILE_SIZE, timeout: int = 30):
        self.max_file_size = max_file_size
        self.timeout = timeout
        self.session = None

    async def __aenter__(self):
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout),
            headers={'User-Agent': 'IdMatch/1.0'}
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()

    async def load_from_url(self, url: str) -> np.ndarray:
        if not self.session:
            raise RuntimeError("ImageLoader not initialized. Use async context manager.")

        start_time = time.time()
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise InvalidImageError(f"No se pudo descargar la imagen (HTTP {response.status})")

                content_length = response.headers.get('content-length')
                if content_length and int(content_length) > self.max_file_size:
                    raise InvalidImageError(f"La imagen excede el tamaño máximo ({self.max_file_size} bytes)")

                content_type = response.headers.get('content-type', '').lower()
                if not any(ct in content_type for ct in IMAGE_CONTENT_TYPES):
                    raise InvalidImageError(f"Tipo de contenido no válido: {content_type}")

                image_data = await response.read()
        except asyncio.TimeoutError:
            logger.error(f"Timed out loading image from URL {url} after {self.timeout}s")
            raise ProcessingTimeoutError()
        except aiohttp.ClientError as e:
            logger.error(f"Failed to load image from URL {url}: {e}")
            raise InvalidImageError()

        if len(image_data) > self.max_file_size:
            raise InvalidImageError(f"La imagen excede el tamaño máximo ({self.max_file_size} bytes)")

        image = bytes_to_array(image_data)
        logger.info(f"Image loaded from URL: {url} ({image.shape}) in {time.time() - start_time:.3f}s")
        return image

    async def load(self, source: str) -> np.ndarray:
        if not source:
            raise InvalidImageError()
        if is_url(source):
            return await self.load_from_url(source)
        return load_from_base64(source, self.max_file_size)


async def load_images(sources: List[Optional[str]],
                      max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> List[Optional[np.ndarray]]:
    """Load several image sources concurrently; None entries stay None."""
    async with ImageLoader(max_file_size=max_file_size) as loader:
        async def load_one(source):
            return await loader.load(source) if source else None
        return list(await asyncio.gather(*(load_one(s) for s in sources)))
