"""
Centralized configuration management for the RAG storage adapters.
Loads environment variables and provides default configurations.
"""

import os
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

class Settings:
    """Application settings and configuration."""

    # Embeddings (Cohere)
    COHERE_API_KEY: Optional[str] = os.getenv("COHERE_API_KEY")
    COHERE_EMBED_MODEL: str = os.getenv("COHERE_EMBED_MODEL", "embed-english-v3.0")
    EMBEDDING_PROVIDER: str = os.getenv("EMBEDDING_PROVIDER", "cohere")

    # Vector Database (Qdrant)
    QDRANT_URL: Optional[str] = os.getenv("QDRANT_URL")
    QDRANT_API_KEY: Optional[str] = os.getenv("QDRANT_API_KEY")
    QDRANT_COLLECTION_NAME: str = os.getenv("QDRANT_COLLECTION_NAME", "documents")
    # Default vector size matches Cohere embed-english-v3.0
    QDRANT_VECTOR_SIZE: int = int(os.getenv("QDRANT_VECTOR_SIZE", "1024"))
    QDRANT_TIMEOUT: int = int(os.getenv("QDRANT_TIMEOUT", "10"))

    # Batched upserts
    UPSERT_CHUNK_SIZE: int = int(os.getenv("UPSERT_CHUNK_SIZE", "1000"))
    MAX_CONCURRENCY: int = int(os.getenv("MAX_CONCURRENCY", "8"))
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "5"))
    RETRY_DELAY: float = float(os.getenv("RETRY_DELAY", "1.0"))

    # Semantic search SaaS (Vectara)
    VECTARA_API_KEY: Optional[str] = os.getenv("VECTARA_API_KEY")
    VECTARA_CUSTOMER_ID: Optional[str] = os.getenv("VECTARA_CUSTOMER_ID")
    VECTARA_CORPUS_ID: Optional[str] = os.getenv("VECTARA_CORPUS_ID")  # comma separated
    VECTARA_API_TIMEOUT: int = int(os.getenv("VECTARA_API_TIMEOUT", "60"))

    # Key-value cache (Redis)
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    REDIS_PASSWORD: Optional[str] = os.getenv("REDIS_PASSWORD")
    REDIS_NAMESPACE: Optional[str] = os.getenv("REDIS_NAMESPACE")
    CACHE_TTL: Optional[int] = int(os.getenv("CACHE_TTL")) if os.getenv("CACHE_TTL") else None
    REDIS_SCAN_BATCH_SIZE: int = int(os.getenv("REDIS_SCAN_BATCH_SIZE", "1000"))

    # Chat-log store (Postgres)
    POSTGRES_CONNINFO: Optional[str] = os.getenv("POSTGRES_CONNINFO")
    POSTGRES_CHAT_TABLE: str = os.getenv("POSTGRES_CHAT_TABLE", "chat_histories")

    # Graph store (Neo4j)
    NEO4J_URI: Optional[str] = os.getenv("NEO4J_URI")
    NEO4J_USER: Optional[str] = os.getenv("NEO4J_USER")
    NEO4J_PASSWORD: Optional[str] = os.getenv("NEO4J_PASSWORD")
    NEO4J_DATABASE: str = os.getenv("NEO4J_DATABASE", "neo4j")
    NEO4J_TIMEOUT: Optional[float] = float(os.getenv("NEO4J_TIMEOUT")) if os.getenv("NEO4J_TIMEOUT") else None

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    LOG_DATE_FORMAT: str = '%Y-%m-%d %H:%M:%S'
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")

    # Required settings per backend
    _REQUIRED = {
        "cohere": ("COHERE_API_KEY",),
        "qdrant": ("QDRANT_URL",),
        "vectara": ("VECTARA_API_KEY", "VECTARA_CUSTOMER_ID", "VECTARA_CORPUS_ID"),
        "redis": ("REDIS_HOST",),
        "postgres": ("POSTGRES_CONNINFO",),
        "neo4j": ("NEO4J_URI", "NEO4J_USER", "NEO4J_PASSWORD"),
    }

    @classmethod
    def validate(cls, *backends: str) -> None:
        """Validate that all settings required by the given backends are present."""
        missing_settings = []
        for backend in backends:
            names = cls._REQUIRED.get(backend.lower())
            if names is None:
                raise ValueError(f"Unknown backend: {backend}")
            missing_settings.extend(name for name in names if not getattr(cls, name))

        if missing_settings:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_settings)}")

# Global settings instance
settings = Settings()
