"""
Abstract interfaces for the storage adapters.
Provides the contracts the database factory and adapters are built against.
"""

from .iembedding_provider import IEmbeddingProvider
from .ivector_index import IVectorIndex, QueryHit, VectorRecord
from .ibyte_store import IByteStore
from .ichat_message_history import IChatMessageHistory

__all__ = [
    'IEmbeddingProvider',
    'IVectorIndex',
    'QueryHit',
    'VectorRecord',
    'IByteStore',
    'IChatMessageHistory'
]
