"""
Embedding Service

Converts text into fixed-dimension vectors for knowledge ingestion and
vector retrieval.

Modes:
- femb: on-device embedding generation using fastembed
- hf: Hugging Face inference API (feature extraction)
- disabled: fixed-length zero vectors, no backend call
"""

import logging
from typing import List, Optional

import httpx
import numpy as np

from .errors import NoValidInput

logger = logging.getLogger("agentflow.common.embedding_service")

HF_FEATURE_EXTRACTION_URL = "https://api-inference.huggingface.co/pipeline/feature-extraction/{model}"

EMBEDDING_MODES = ("femb", "hf", "disabled")


class EmbeddingService:
    """
    Embedding service for agentflow.

    Uses fastembed by default for on-device embedding generation. The
    "disabled" mode keeps downstream vector shapes consistent without
    loading a model or calling an API.
    """

    def __init__(
        self,
        mode: str = "femb",
        model: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimension: int = 384,
        hf_api_key: Optional[str] = None,
        batch_size: int = 100,
        timeout: float = 30.0,
    ):
        """
        Initialize embedding service.

        Args:
            mode: Embedding mode (femb, hf, disabled)
            model: Model name
            dimension: Vector dimension (used for zero vectors in disabled mode)
            hf_api_key: Hugging Face API token (hf mode)
            batch_size: Maximum texts per backend call
            timeout: HTTP timeout in seconds (hf mode)
        """
        if mode not in EMBEDDING_MODES:
            raise ValueError(f"Unsupported embedding mode: {mode}")

        self._mode = mode
        self._model = model
        self._dimension = dimension
        self._hf_api_key = hf_api_key
        self._batch_size = max(1, batch_size)
        self._timeout = timeout
        self._fastembed = None

    @classmethod
    def from_config(cls, embedding_config) -> "EmbeddingService":
        return cls(
            mode=embedding_config.mode,
            model=embedding_config.model,
            dimension=embedding_config.dimension,
            hf_api_key=embedding_config.hf_api_key or None,
            batch_size=embedding_config.batch_size,
        )

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_disabled(self) -> bool:
        return self._mode == "disabled"

    def _get_fastembed(self):
        """Lazily load the fastembed model (downloads on first use)"""
        if self._fastembed is None:
            from fastembed import TextEmbedding

            self._fastembed = TextEmbedding(model_name=self._model)
            logger.info("Loaded fastembed model %s", self._model)
        return self._fastembed

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Blank strings are filtered out before submission, so the result has
        one vector per non-blank input, in input order.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors

        Raises:
            NoValidInput: If no non-blank text remains after filtering
        """
        valid_texts = [t for t in texts if isinstance(t, str) and t.strip()]
        if not valid_texts:
            raise NoValidInput("No valid input texts provided for embedding.")

        if self.is_disabled:
            return [[0.0] * self._dimension for _ in valid_texts]

        embeddings: List[List[float]] = []
        for start in range(0, len(valid_texts), self._batch_size):
            batch = valid_texts[start:start + self._batch_size]
            if self._mode == "femb":
                embeddings.extend(self._embed_fastembed(batch))
            else:
                embeddings.extend(self._embed_hf(batch))

        return embeddings

    def _embed_fastembed(self, texts: List[str]) -> List[List[float]]:
        model = self._get_fastembed()
        return [np.asarray(vec, dtype=float).tolist() for vec in model.embed(texts)]

    def _embed_hf(self, texts: List[str]) -> List[List[float]]:
        if not self._hf_api_key:
            raise RuntimeError("Hugging Face API key not configured")

        response = httpx.post(
            HF_FEATURE_EXTRACTION_URL.format(model=self._model),
            headers={"Authorization": f"Bearer {self._hf_api_key}"},
            json={"inputs": texts, "options": {"wait_for_model": True}},
            timeout=self._timeout,
        )
        response.raise_for_status()
        data = response.json()

        if not isinstance(data, list) or len(data) != len(texts):
            raise RuntimeError(f"Unexpected feature-extraction response for {len(texts)} texts")

        return [np.asarray(vec, dtype=float).reshape(-1).tolist() for vec in data]

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Raises:
            NoValidInput: If text is blank
        """
        return self.embed([text])[0]
