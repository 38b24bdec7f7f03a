"""
Graph document types loaded into graph stores.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.documents import Document


@dataclass
class Node:
    id: str
    type: str = "Node"
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Relationship:
    source: Node
    target: Node
    type: str
    properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphDocument:
    """Nodes and relationships extracted from a source document."""

    nodes: List[Node]
    relationships: List[Relationship]
    source: Optional[Document] = None
