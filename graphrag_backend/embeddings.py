"""
Embedding providers.

Everything here speaks LangChain's ``Embeddings`` interface
(``embed_documents`` / ``embed_query``) so the relationship builder and the
vector store can take any LangChain embedding model.  Two providers are
wired up:

- ``hashing`` (default): a local, deterministic bag-of-words embedding built
  on scikit‑learn's ``HashingVectorizer``.  It needs no API key and no
  fitting step, which keeps document and query vectors in the same space.
- ``openai``: ``OpenAIEmbeddings`` from ``langchain_openai`` when
  ``OPENAI_API_KEY`` is available.
"""

from __future__ import annotations

import logging
import os
from typing import Any, List, Optional

from langchain_core.embeddings import Embeddings
from langchain_openai import OpenAIEmbeddings
from sklearn.feature_extraction.text import HashingVectorizer

from .config import GraphRagSettings, get_graph_rag_settings

logger = logging.getLogger("graphrag_backend.embeddings")


class HashingEmbeddings(Embeddings):
    """Stateless term-hashing embeddings (L2 normalised, non-negative)."""

    def __init__(self, n_features: int = 1024) -> None:
        self.n_features = n_features
        self._vectorizer = HashingVectorizer(
            n_features=n_features,
            alternate_sign=False,
            norm="l2",
            ngram_range=(1, 2),
        )

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []
        matrix = self._vectorizer.transform(texts)
        return matrix.toarray().tolist()

    def embed_query(self, text: str) -> List[float]:
        return self.embed_documents([text])[0]


def get_embeddings(settings: Optional[GraphRagSettings] = None) -> Any:
    """Return the configured embedding model.

    Falls back to :class:`HashingEmbeddings` when OpenAI is requested but no
    API key is configured.
    """
    settings = settings or get_graph_rag_settings()
    provider = (settings.embedding_provider or "hashing").lower()

    if provider == "openai":
        if os.getenv("OPENAI_API_KEY"):
            kwargs: dict[str, Any] = {}
            if settings.embedding_model:
                kwargs["model"] = settings.embedding_model
            logger.info(f"Initialising OpenAI embeddings (model={settings.embedding_model})")
            return OpenAIEmbeddings(**kwargs)
        logger.warning(
            "Embedding provider 'openai' requested but OPENAI_API_KEY is not set; "
            "falling back to hashing embeddings."
        )
    elif provider != "hashing":
        logger.warning(f"Unknown embedding provider '{provider}'; using hashing embeddings.")

    return HashingEmbeddings(n_features=settings.embedding_dimensions)


__all__ = ["HashingEmbeddings", "get_embeddings"]
