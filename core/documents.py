"""
Document types exchanged between the toolkit and the storage adapters.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple, Union

# JSON-like metadata values
MetadataValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]
Metadata = Dict[str, MetadataValue]


@dataclass(frozen=True)
class Document:
    """A piece of text with structured metadata."""

    page_content: str
    metadata: Metadata = field(default_factory=dict)


# (document, score) as reported by the backing service
ScoredResult = Tuple[Document, float]
