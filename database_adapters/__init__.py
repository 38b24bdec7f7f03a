"""
Database adapters module for pluggable storage backends.
Provides the graph database interface; vector, key-value and chat-log adapters
live in the vector, storage and message sub-packages.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from core.graph_document import GraphDocument

class GraphDatabaseAdapter(ABC):
    """Abstract base class for graph database adapters."""

    @abstractmethod
    async def connect(self) -> bool:
        """Establish connection to the database."""
        pass

    @abstractmethod
    async def close(self):
        """Close database connection."""
        pass

    @abstractmethod
    async def query(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Execute a query and return results."""
        pass

    @abstractmethod
    async def refresh_schema(self) -> None:
        """Reload schema information from the database."""
        pass

    @abstractmethod
    def get_schema(self) -> str:
        """Return the schema as text."""
        pass

    @abstractmethod
    async def add_graph_documents(self, graph_documents: Sequence[GraphDocument],
                                  include_source: bool = False, base_entity_label: bool = False) -> None:
        """Populate database with graph documents."""
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Perform health check on database."""
        pass

    @property
    @abstractmethod
    def database_type(self) -> str:
        """Return database type identifier."""
        pass
