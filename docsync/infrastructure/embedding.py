import asyncio
from typing import Protocol

import numpy as np
from fastembed import TextEmbedding

from docsync.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-dimension vector."""

    async def embed(self, text: str) -> list[float]: ...


class FastEmbedProvider:
    """Thin wrapper around fastembed for text-to-vector conversion."""

    def __init__(self, model_name: str = DEFAULT_MODEL) -> None:
        self._model: TextEmbedding | None = None
        self._model_name = model_name

    @property
    def model_name(self) -> str:
        return self._model_name

    def _ensure_loaded(self) -> TextEmbedding:
        """Lazy-load the dense model on first use."""
        if self._model is None:
            logger.info("Loading embedding model: %s", self._model_name)
            self._model = TextEmbedding(model_name=self._model_name)
        return self._model

    def _embed_sync(self, text: str) -> list[float]:
        model = self._ensure_loaded()
        results = list(model.embed([text]))
        return self._to_list(results[0])

    async def embed(self, text: str) -> list[float]:
        """Embed a single text string off the event loop."""
        return await asyncio.to_thread(self._embed_sync, text)

    @staticmethod
    def _to_list(vector: np.ndarray | list[float]) -> list[float]:
        """Convert numpy array to plain list of floats."""
        if isinstance(vector, np.ndarray):
            return vector.tolist()
        return list(vector)
