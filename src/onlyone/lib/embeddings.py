"""Sentence embeddings: model lifecycle and similarity.

:class:`EmbeddingProvider` wraps a sentence-transformers model behind a
small contract (``embed(text) -> 384 floats``, unit length, mean pooled).
The model is loaded lazily and exactly once per provider: concurrent
callers that arrive during a cold start all await the same in-flight
load task.  Failures surface as :class:`EmbeddingUnavailable` so callers
can fall back to lexical matching.
"""

import asyncio
import logging
import time
from typing import Any, Callable

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
EMBEDDING_DIM = 384


class EmbeddingUnavailable(RuntimeError):
    """Raised when the model cannot be loaded or fails to embed."""


def _load_sentence_transformer(model_name: str):
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


class EmbeddingProvider:
    """Lazily-initialized, process-wide embedding model.

    Parameters
    ----------
    model_name:
        Name or path passed to the loader.
    loader:
        Callable returning an object with a sentence-transformers style
        ``encode(texts, normalize_embeddings=True)`` method.  Runs in a
        worker thread.
    dimensions:
        Expected vector length; ``None`` disables the check.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        loader: Callable[[str], Any] | None = None,
        dimensions: int | None = EMBEDDING_DIM,
    ):
        self.model_name = model_name
        self.dimensions = dimensions
        self._loader = loader or _load_sentence_transformer
        self._model = None
        self._load_task: asyncio.Task | None = None

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    async def _load(self):
        logger.info("Loading embedding model %s", self.model_name)
        start = time.monotonic()
        model = await asyncio.to_thread(self._loader, self.model_name)
        logger.info(
            "Embedding model %s loaded in %.0fms",
            self.model_name,
            (time.monotonic() - start) * 1000,
        )
        self._model = model
        return model

    def _on_load_done(self, task: asyncio.Task) -> None:
        # Also runs when no caller is left awaiting the load.
        if not task.cancelled() and task.exception() is None:
            return
        if self._load_task is task:
            self._load_task = None
        if not task.cancelled():
            logger.error(
                "Failed to load embedding model %s: %s", self.model_name, task.exception()
            )

    async def init(self):
        """Load the model if needed; safe to call concurrently and repeatedly."""
        if self._model is not None:
            return self._model

        if self._load_task is None:
            self._load_task = asyncio.create_task(self._load())
            self._load_task.add_done_callback(self._on_load_done)
        task = self._load_task

        try:
            # shield: a caller timing out must not cancel the shared load
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise EmbeddingUnavailable(f"model {self.model_name} failed to load") from exc

    async def warmup(self) -> bool:
        """Eagerly load the model and run one inference.  Never raises."""
        try:
            await self.embed("warmup")
        except EmbeddingUnavailable:
            logger.warning("Embedding warmup failed; model will load on first use")
            return False
        return True

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts in one model call."""
        if not texts:
            return []
        model = await self.init()
        cleaned = [t.strip().lower() for t in texts]
        try:
            raw = await asyncio.to_thread(
                model.encode, cleaned, normalize_embeddings=True
            )
        except Exception as exc:
            logger.exception("Embedding inference failed")
            raise EmbeddingUnavailable("embedding inference failed") from exc

        matrix = np.atleast_2d(np.asarray(raw, dtype=np.float32))
        if self.dimensions is not None and matrix.shape[1] != self.dimensions:
            raise EmbeddingUnavailable(
                f"expected {self.dimensions}-d embeddings, got {matrix.shape[1]}"
            )
        norms = np.linalg.norm(matrix, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return (matrix / norms).astype(float).tolist()

    async def embed(self, text: str) -> list[float]:
        """Embed one text into a unit-length vector."""
        vectors = await self.embed_many([text])
        return vectors[0]


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity in ``[-1, 1]``; 0.0 when either vector is all zeros."""
    if len(a) != len(b):
        raise ValueError("Embeddings must have the same dimensions")
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    magnitude = np.linalg.norm(va) * np.linalg.norm(vb)
    if magnitude == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / magnitude, -1.0, 1.0))

