"""
ArcFace / MobileFaceNet embedding model running on ONNX Runtime.
"""

import logging
import os
from typing import List, Optional, Tuple

import cv2
import numpy as np
import onnxruntime as ort
from sklearn.preprocessing import normalize

from .errors import ModelUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_INPUT_SIZE = 112
DEFAULT_EMBEDDING_SIZE = 512


class ArcFaceEmbeddingModel:
    """Deep embedding model backed by an ArcFace-style ONNX graph."""

    def __init__(self, model_path: Optional[str], providers: Optional[List[str]] = None):
        self.model_path = model_path
        self.session = None
        self.input_name = None
        self.output_names = None
        self.input_shape = None
        self.input_size = DEFAULT_INPUT_SIZE
        self.embedding_size = DEFAULT_EMBEDDING_SIZE
        self._initialize_model(providers)

    def _initialize_model(self, providers: Optional[List[str]]) -> None:
        if not self.model_path or not os.path.exists(self.model_path):
            logger.warning(f"ArcFace model not found at: {self.model_path}; deep scoring disabled")
            return

        if providers is None:
            providers = ['CPUExecutionProvider']
            if ort.get_device() == 'GPU':
                providers.insert(0, 'CUDAExecutionProvider')

        try:
            self.session = ort.InferenceSession(self.model_path, providers=providers)
        except Exception as e:
            logger.error(f"Failed to initialize ArcFace model: {e}")
            self.session = None
            return

        model_input = self.session.get_inputs()[0]
        self.input_name = model_input.name
        self.input_shape = model_input.shape
        self.output_names = [output.name for output in self.session.get_outputs()]
        output_dim = self.session.get_outputs()[0].shape[-1]
        if isinstance(output_dim, int):
            self.embedding_size = output_dim
        spatial = self._spatial_size()
        if spatial:
            self.input_size = spatial

        logger.info(f"ArcFace embedding model initialized: input={self.input_shape}, "
                    f"embedding size={self.embedding_size}")

    def _channels_first(self) -> bool:
        return bool(self.input_shape) and len(self.input_shape) == 4 and self.input_shape[1] == 3

    def _spatial_size(self) -> Optional[int]:
        if not self.input_shape or len(self.input_shape) != 4:
            return None
        size = self.input_shape[2] if self._channels_first() else self.input_shape[1]
        return size if isinstance(size, int) else None

    def available(self) -> bool:
        return self.session is not None

    def preprocess(self, face_image: np.ndarray) -> np.ndarray:
        """Resize to the model input and scale RGB pixels to [-1, 1]."""
        target: Tuple[int, int] = (self.input_size, self.input_size)
        if face_image.shape[:2] != target:
            face_image = cv2.resize(face_image, target, interpolation=cv2.INTER_LINEAR)

        tensor = face_image.astype(np.float32) / 255.0 * 2.0 - 1.0
        if self._channels_first() or self.input_shape is None:
            tensor = np.transpose(tensor, (2, 0, 1))
        return np.expand_dims(tensor, axis=0).astype(np.float32)

    def embed(self, aligned_face: np.ndarray) -> np.ndarray:
        if not self.available():
            raise ModelUnavailableError()

        outputs = self.session.run(self.output_names, {self.input_name: self.preprocess(aligned_face)})
        raw_embedding = np.asarray(outputs[0][0], dtype=np.float32)
        return normalize(raw_embedding.reshape(1, -1), norm='l2')[0]
