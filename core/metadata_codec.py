"""
Folds a document's text into the flat metadata record stored next to its vector,
and unfolds it again on read.
"""

from typing import Any, Mapping, Optional

from core.documents import Document, Metadata

RESERVED_TEXT_KEY = "_pageContentLC"


def encode_metadata(document: Document) -> Metadata:
    """
    Build the metadata record for a document.

    A caller metadata key equal to RESERVED_TEXT_KEY is overwritten by the
    document text.
    """
    encoded: Metadata = {RESERVED_TEXT_KEY: document.page_content}
    encoded.update(document.metadata)
    encoded[RESERVED_TEXT_KEY] = document.page_content
    return encoded


def decode_metadata(raw: Optional[Mapping[str, Any]]) -> Document:
    """Rebuild a document from a metadata record returned by a query."""
    metadata = dict(raw or {})
    page_content = metadata.pop(RESERVED_TEXT_KEY, "")
    return Document(page_content=page_content if page_content is not None else "", metadata=metadata)
