"""
This module provides a factory for creating embedding providers and defines concrete implementations
for various embedding services like Cohere.
"""

import logging
from typing import List, Optional
import cohere

from config.settings import settings
from core.errors import UpstreamFailure, ValidationError
from interfaces.iembedding_provider import IEmbeddingProvider

logger = logging.getLogger(__name__)

class CohereEmbeddings(IEmbeddingProvider):
    """Cohere embeddings client for text embedding operations."""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None, batch_size: int = 96):
        api_key = api_key or settings.COHERE_API_KEY
        if not api_key:
            raise ValidationError("COHERE_API_KEY not found in environment")

        self.model = model or settings.COHERE_EMBED_MODEL
        self.batch_size = batch_size
        self.client = cohere.AsyncClient(api_key=api_key)
        self._dimensions = 1024  # For embed-english-v3.0
        logger.info(f"Initialized Cohere embeddings: {self.model}")

    @property
    def dimensions(self) -> int:
        return self._dimensions

    async def _embed(self, texts: List[str], input_type: str) -> List[List[float]]:
        all_embeddings = []
        for i in range(0, len(texts), self.batch_size):
            batch_texts = texts[i:i + self.batch_size]
            try:
                response = await self.client.embed(
                    texts=batch_texts,
                    model=self.model,
                    input_type=input_type,
                )
            except Exception as e:
                logger.error(f"Cohere embedding failed for batch {i // self.batch_size + 1}: {e}")
                raise UpstreamFailure(f"Cohere embedding failed for batch {i // self.batch_size + 1}",
                                      service="cohere", detail=str(e)) from e

            # Handle Cohere response structure properly
            if hasattr(response.embeddings, 'float_'):
                embeddings = response.embeddings.float_
            else:
                embeddings = response.embeddings
            all_embeddings.extend(embeddings)
        return all_embeddings

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return await self._embed(texts, input_type="search_document")

    async def embed_query(self, query: str) -> List[float]:
        return (await self._embed([query], input_type="search_query"))[0]

class EmbeddingFactory:
    """Factory for creating embedding provider instances."""
    _providers = {
        "cohere": CohereEmbeddings
    }

    @staticmethod
    def create_embedding_provider(provider_name: Optional[str] = None, **kwargs) -> IEmbeddingProvider:
        provider_name = provider_name or settings.EMBEDDING_PROVIDER
        provider_class = EmbeddingFactory._providers.get(provider_name.lower())

        if not provider_class:
            raise ValidationError(f"Unsupported embedding provider: {provider_name}")

        logger.info(f"Creating embedding provider: {provider_name}")
        return provider_class(**kwargs)
