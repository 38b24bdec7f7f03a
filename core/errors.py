"""
Error taxonomy shared by all storage adapters.
"""

from typing import Any, Dict, List, Optional, Tuple


class AdapterError(Exception):
    """Base class for adapter errors."""


class ValidationError(AdapterError, ValueError):
    """Malformed call or missing configuration, raised before any network call."""


class UpstreamFailure(AdapterError):
    """The wrapped service, embedding provider or backing store failed."""

    def __init__(self, message: str, service: Optional[str] = None,
                 status: Optional[Any] = None, detail: Optional[Any] = None):
        super().__init__(message)
        self.service = service
        self.status = status
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": str(self),
            "service": self.service,
            "status": self.status,
            "detail": self.detail,
        }


class PartialBatchFailure(UpstreamFailure):
    """
    One or more chunks of a multi-chunk upsert failed.

    Chunks that were applied before the failure are not rolled back.

    Attributes:
        failed_chunks: Indices of the chunks that failed, in dispatch order
        total_chunks: Number of chunks the batch was split into
        id_ranges: (first_id, last_id) of each failed chunk
        errors: The underlying exception of each failed chunk
    """

    def __init__(self, message: str, failed_chunks: List[int], total_chunks: int,
                 id_ranges: List[Tuple[str, str]], errors: List[BaseException],
                 service: Optional[str] = None):
        super().__init__(message, service=service, detail={
            "failed_chunks": failed_chunks,
            "total_chunks": total_chunks,
            "id_ranges": id_ranges,
        })
        self.failed_chunks = failed_chunks
        self.total_chunks = total_chunks
        self.id_ranges = id_ranges
        self.errors = errors
