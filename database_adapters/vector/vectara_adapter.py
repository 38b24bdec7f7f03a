"""
Vectara semantic search adapter.
Vectara embeds and chunks documents server-side, so this store only speaks its
HTTP API and never handles vectors.
"""

import json
import logging
import os
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union
import httpx

from config.settings import settings
from core.documents import Document, ScoredResult
from core.errors import UpstreamFailure, ValidationError

from . import VectorStoreAdapter, validate_delete_params, validate_top_k

logger = logging.getLogger(__name__)

DEFAULT_SOURCE = "rag-storage-adapters"
MMR_RERANKER_ID = 272725718


@dataclass
class VectaraFile:
    """A file to upload to Vectara."""

    content: bytes
    file_name: str


@dataclass
class VectaraContextConfig:
    chars_before: Optional[int] = None
    chars_after: Optional[int] = None
    sentences_before: Optional[int] = 2
    sentences_after: Optional[int] = 2
    start_tag: Optional[str] = "<b>"
    end_tag: Optional[str] = "</b>"

    def to_payload(self) -> Dict[str, Any]:
        names = {
            "chars_before": "charsBefore",
            "chars_after": "charsAfter",
            "sentences_before": "sentencesBefore",
            "sentences_after": "sentencesAfter",
            "start_tag": "startTag",
            "end_tag": "endTag",
        }
        return {names[key]: value for key, value in asdict(self).items() if value is not None}


@dataclass
class MMRConfig:
    enabled: bool = False
    mmr_top_k: int = 0
    diversity_bias: float = 0.0


@dataclass
class VectaraFilter:
    """
    Retrieval arguments for a Vectara query.

    ``filter`` is a Vectara metadata filter expression such as
    "doc.rating > 3.0 and part.lang = 'deu'"; ``lambda_`` mixes neural and
    keyword scoring (0..1).
    """

    start: int = 0
    filter: str = ""
    lambda_: float = 0.0
    context_config: VectaraContextConfig = field(default_factory=VectaraContextConfig)
    mmr_config: MMRConfig = field(default_factory=MMRConfig)


@dataclass
class VectaraSummary:
    enabled: bool = False
    max_summarized_results: int = 0
    response_lang: str = "eng"
    summarizer_prompt_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "maxSummarizedResults": self.max_summarized_results,
            "responseLang": self.response_lang,
        }
        if self.summarizer_prompt_name:
            payload["summarizerPromptName"] = self.summarizer_prompt_name
        return payload


@dataclass
class SummaryResult:
    documents: List[Document]
    scores: List[float]
    summary: str


DEFAULT_FILTER = VectaraFilter()


def _parse_corpus_ids(corpus_id: Union[int, Sequence[int], str, None]) -> List[int]:
    if corpus_id is None or corpus_id == "":
        raise ValidationError("Vectara corpus id is not provided.")
    if isinstance(corpus_id, str):
        parts = [part.strip() for part in corpus_id.split(",") if part.strip()]
        try:
            corpus_ids = [int(part) for part in parts]
        except ValueError:
            raise ValidationError("Vectara corpus id is not a number.")
        if not corpus_ids:
            raise ValidationError("Vectara corpus id is not provided.")
        return corpus_ids
    if isinstance(corpus_id, int):
        return [corpus_id]
    corpus_ids = list(corpus_id)
    if not corpus_ids:
        raise ValidationError("Vectara corpus id is not provided.")
    return corpus_ids


class VectaraStore(VectorStoreAdapter):
    """Adapter for the Vectara indexing and query API."""

    api_endpoint = "api.vectara.io"

    def __init__(self, embeddings=None, customer_id: Optional[int] = None,
                 corpus_id: Union[int, Sequence[int], None] = None, api_key: Optional[str] = None,
                 verbose: bool = False, source: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        # Vectara embeds server-side; embeddings are accepted for factory symmetry only
        super().__init__(embeddings)

        self.api_key = api_key or os.getenv("VECTARA_API_KEY")
        if not self.api_key:
            raise ValidationError("Vectara api key is not provided.")

        self.corpus_id = _parse_corpus_ids(
            corpus_id if corpus_id is not None else os.getenv("VECTARA_CORPUS_ID")
        )

        customer_id = customer_id if customer_id is not None else os.getenv("VECTARA_CUSTOMER_ID")
        if customer_id is None or customer_id == "":
            raise ValidationError("Vectara customer id is not provided.")
        try:
            self.customer_id = int(customer_id)
        except (TypeError, ValueError):
            raise ValidationError("Vectara customer id is not a number.")

        self.verbose = verbose
        self.source = source or DEFAULT_SOURCE
        self.timeout = timeout or settings.VECTARA_API_TIMEOUT
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.timeout)

    @property
    def vectorstore_type(self) -> str:
        return "vectara"

    def get_json_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
            "customer-id": str(self.customer_id),
            "X-Source": self.source,
        }

    def _url(self, path: str) -> str:
        return f"https://{self.api_endpoint}{path}"

    async def _post(self, path: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.post(self._url(path), timeout=self.timeout, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Vectara request to {path} failed: {e}")
            raise UpstreamFailure(f"Vectara request to {path} failed: {e}", service="vectara",
                                  detail=repr(e)) from e

    async def add_vectors(self, vectors, documents, ids=None) -> List[str]:
        raise NotImplementedError("Method not implemented. Please call add_documents instead.")

    async def add_documents(self, documents: Sequence[Document], ids: Optional[Sequence[str]] = None) -> List[str]:
        """
        Index documents in the corpus, one request per document.

        The document id is taken from ``ids``, else from the ``document_id``
        metadata field, else generated.

        Returns:
            The ids of the indexed documents
        """
        if len(self.corpus_id) > 1:
            raise ValidationError("add_documents does not support multiple corpus ids")
        if ids is not None and len(ids) != len(documents):
            raise ValidationError(f"Got {len(documents)} documents but {len(ids)} ids")

        headers = self.get_json_headers()
        doc_ids: List[str] = []
        for index, document in enumerate(documents):
            metadata = document.metadata or {}
            doc_id = ids[index] if ids is not None else (metadata.get("document_id") or str(uuid.uuid4()))
            data = {
                "customer_id": self.customer_id,
                "corpus_id": self.corpus_id[0],
                "document": {
                    "document_id": doc_id,
                    "title": metadata.get("title", ""),
                    "metadata_json": json.dumps(metadata),
                    "section": [{"text": document.page_content}],
                },
            }

            response = await self._post("/v1/index", headers=headers, json=data)
            try:
                result = response.json()
            except ValueError:
                result = {}
            status_code = (result.get("status") or {}).get("code")
            if status_code not in ("OK", "ALREADY_EXISTS"):
                logger.error(f"Vectara rejected document {doc_id}: {status_code}")
                raise UpstreamFailure(
                    f"Vectara API returned status code {status_code} while adding document {doc_id}: "
                    f"{json.dumps(result.get('message'))}",
                    service="vectara", status=status_code or response.status_code, detail=result,
                )
            doc_ids.append(doc_id)

        if self.verbose:
            logger.info(f"Added {len(doc_ids)} documents to Vectara")
        return doc_ids

    async def add_files(self, files: Sequence[VectaraFile],
                        metadatas: Optional[Sequence[Dict[str, Any]]] = None) -> List[str]:
        """
        Upload files; Vectara extracts and chunks them server-side.

        Returns:
            The document ids assigned by Vectara
        """
        if len(self.corpus_id) > 1:
            raise ValidationError("add_files does not support multiple corpus ids")
        if metadatas is not None and len(metadatas) != len(files):
            raise ValidationError(f"Got {len(files)} files but {len(metadatas)} metadatas")

        doc_ids: List[str] = []
        for index, file in enumerate(files):
            metadata = metadatas[index] if metadatas is not None else {}
            response = await self._post(
                "/v1/upload",
                params={"c": self.customer_id, "o": self.corpus_id[0], "d": "true"},
                headers={"x-api-key": self.api_key, "X-Source": self.source},
                files={"file": (file.file_name, file.content)},
                data={"doc-metadata": json.dumps(metadata)},
            )
            if response.status_code == 409:
                raise UpstreamFailure(f"File at index {index} already exists in Vectara",
                                      service="vectara", status=409)
            if response.status_code != 200:
                raise UpstreamFailure(f"Vectara API returned status code {response.status_code}",
                                      service="vectara", status=response.status_code, detail=response.text)
            doc_ids.append(response.json()["document"]["documentId"])

        if self.verbose:
            logger.info(f"Uploaded {len(files)} files to Vectara")
        return doc_ids

    async def delete_documents(self, ids: Sequence[str]) -> None:
        """Delete documents from the first corpus, one request per id."""
        if not ids:
            raise ValidationError('no "ids" specified for deletion')

        headers = self.get_json_headers()
        for doc_id in ids:
            data = {
                "customer_id": self.customer_id,
                "corpus_id": self.corpus_id[0],
                "document_id": doc_id,
            }
            response = await self._post("/v1/delete-doc", headers=headers, json=data)
            if response.status_code != 200:
                logger.error(f"Vectara failed to delete document {doc_id}: {response.status_code}")
                raise UpstreamFailure(
                    f"Vectara API returned status code {response.status_code} when deleting document {doc_id}",
                    service="vectara", status=response.status_code, detail=response.text,
                )

    async def delete(self, ids=None, delete_all: bool = False) -> None:
        id_list = validate_delete_params(ids, delete_all)
        if delete_all:
            raise ValidationError("Vectara corpus reset is not supported; delete by ids instead.")
        await self.delete_documents(id_list)

    def _build_query(self, query: str, k: int, vectara_filter: VectaraFilter,
                     summary: VectaraSummary) -> Dict[str, Any]:
        corpus_keys = [
            {
                "customerId": self.customer_id,
                "corpusId": corpus_id,
                "metadataFilter": vectara_filter.filter,
                "lexicalInterpolationConfig": {"lambda": vectara_filter.lambda_},
            }
            for corpus_id in self.corpus_id
        ]
        mmr = vectara_filter.mmr_config
        request: Dict[str, Any] = {
            "query": query,
            "start": vectara_filter.start,
            "numResults": mmr.mmr_top_k if mmr.enabled else k,
            "contextConfig": vectara_filter.context_config.to_payload(),
            "corpusKey": corpus_keys,
        }
        if mmr.enabled:
            request["rerankingConfig"] = {
                "rerankerId": MMR_RERANKER_ID,
                "mmrConfig": {"diversityBias": mmr.diversity_bias},
            }
        if summary.enabled:
            request["summary"] = [summary.to_payload()]
        return {"query": [request]}

    async def vectara_query(self, query: str, k: int, vectara_filter: Optional[VectaraFilter] = None,
                            summary: Optional[VectaraSummary] = None) -> SummaryResult:
        """
        Run a query against every configured corpus.

        Returns:
            Matching documents, their scores, and the generated summary
            (empty unless summarization is enabled)
        """
        validate_top_k(k)
        data = self._build_query(query, k, vectara_filter or DEFAULT_FILTER, summary or VectaraSummary())

        response = await self._post("/v1/query", headers=self.get_json_headers(), json=data)
        if response.status_code != 200:
            logger.error(f"Vectara query failed with status {response.status_code}")
            raise UpstreamFailure(f"Vectara API returned status code {response.status_code}",
                                  service="vectara", status=response.status_code, detail=response.text)

        response_set = response.json()["responseSet"][0]
        responses = response_set.get("response", [])
        documents = response_set.get("document", [])

        results: List[Document] = []
        scores: List[float] = []
        for item in responses:
            combined_metadata: Dict[str, Any] = {}
            for entry in item.get("metadata", []):
                combined_metadata[entry["name"]] = entry["value"]
            for entry in documents[item["documentIndex"]].get("metadata", []):
                combined_metadata[entry["name"]] = entry["value"]
            results.append(Document(page_content=item["text"], metadata=combined_metadata))
            scores.append(item["score"])

        summaries = response_set.get("summary") or []
        summary_text = (summaries[0] or {}).get("text", "") if summaries else ""
        return SummaryResult(documents=results, scores=scores, summary=summary_text or "")

    async def similarity_search_with_score(self, query: str, k: int = 10,
                                           filter: Optional[VectaraFilter] = None) -> List[ScoredResult]:
        result = await self.vectara_query(query, k or 10, filter or DEFAULT_FILTER)
        return list(zip(result.documents, result.scores))

    async def similarity_search(self, query: str, k: int = 10,
                                filter: Optional[VectaraFilter] = None) -> List[Document]:
        results = await self.similarity_search_with_score(query, k or 10, filter or DEFAULT_FILTER)
        return [document for document, _ in results]

    async def similarity_search_vector_with_score(self, query, k, filter=None) -> List[ScoredResult]:
        raise NotImplementedError(
            "Method not implemented. Please call similarity_search or similarity_search_with_score instead."
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()
