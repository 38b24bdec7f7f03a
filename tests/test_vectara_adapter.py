"""
Tests for the Vectara adapter, served by an httpx mock transport.
"""

import asyncio
import json

import httpx
import pytest

from core.documents import Document
from core.errors import UpstreamFailure, ValidationError
from database_adapters.vector.vectara_adapter import (
    MMR_RERANKER_ID, MMRConfig, VectaraFile, VectaraFilter, VectaraStore, VectaraSummary,
)

QUERY_RESPONSE = {
    "responseSet": [{
        "response": [
            {"text": "Cats purr.", "score": 0.87, "documentIndex": 0,
             "metadata": [{"name": "lang", "value": "eng"}]},
            {"text": "Dogs bark.", "score": 0.42, "documentIndex": 1,
             "metadata": [{"name": "lang", "value": "eng"}]},
        ],
        "document": [
            {"id": "doc-cat", "metadata": [{"name": "title", "value": "Cats"}]},
            {"id": "doc-dog", "metadata": [{"name": "title", "value": "Dogs"}]},
        ],
        "summary": [{"text": "Cats purr and dogs bark."}],
    }]
}


def make_store(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    params = {"customer_id": 111, "corpus_id": 7, "api_key": "secret", "client": client}
    params.update(kwargs)
    return VectaraStore(**params)


class TestVectaraConfig:
    """Test credential resolution."""

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("VECTARA_API_KEY", raising=False)

        with pytest.raises(ValidationError, match="api key"):
            VectaraStore(customer_id=1, corpus_id=1)

    def test_missing_customer_id(self, monkeypatch):
        monkeypatch.delenv("VECTARA_CUSTOMER_ID", raising=False)

        with pytest.raises(ValidationError, match="customer id"):
            VectaraStore(api_key="k", corpus_id=1)

    def test_non_numeric_corpus_id(self):
        with pytest.raises(ValidationError, match="not a number"):
            VectaraStore(api_key="k", customer_id=1, corpus_id="abc")

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("VECTARA_API_KEY", "env-key")
        monkeypatch.setenv("VECTARA_CUSTOMER_ID", "42")
        monkeypatch.setenv("VECTARA_CORPUS_ID", "1, 2,3")

        store = VectaraStore()

        assert store.api_key == "env-key"
        assert store.customer_id == 42
        assert store.corpus_id == [1, 2, 3]
        asyncio.run(store.aclose())

    def test_headers(self):
        store = make_store(lambda request: httpx.Response(200), source="unit-test")

        headers = store.get_json_headers()

        assert headers["x-api-key"] == "secret"
        assert headers["customer-id"] == "111"
        assert headers["X-Source"] == "unit-test"


class TestVectaraIndexing:
    """Test document indexing, upload and delete."""

    def test_add_documents(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"status": {"code": "OK"}})

        store = make_store(handler)
        docs = [
            Document(page_content="Cats purr.", metadata={"title": "Cats", "document_id": "doc-cat"}),
            Document(page_content="Dogs bark.", metadata={"title": "Dogs"}),
        ]

        ids = asyncio.run(store.add_documents(docs))

        assert ids[0] == "doc-cat"
        assert len(ids) == 2 and ids[1]
        assert [request.url.path for request in requests] == ["/v1/index", "/v1/index"]
        body = json.loads(requests[0].content)
        assert body["customer_id"] == 111
        assert body["corpus_id"] == 7
        assert body["document"]["title"] == "Cats"
        assert body["document"]["section"] == [{"text": "Cats purr."}]
        assert json.loads(body["document"]["metadata_json"]) == {"title": "Cats", "document_id": "doc-cat"}

    def test_add_documents_already_exists_accepted(self):
        store = make_store(lambda request: httpx.Response(200, json={"status": {"code": "ALREADY_EXISTS"}}))

        ids = asyncio.run(store.add_documents([Document(page_content="x")], ids=["fixed"]))

        assert ids == ["fixed"]

    def test_add_documents_rejected(self):
        store = make_store(lambda request: httpx.Response(
            200, json={"status": {"code": "BAD_REQUEST"}, "message": "corpus missing"}
        ))

        with pytest.raises(UpstreamFailure, match="BAD_REQUEST") as exc_info:
            asyncio.run(store.add_documents([Document(page_content="x")]))

        assert exc_info.value.service == "vectara"

    def test_add_documents_multiple_corpora(self):
        store = make_store(lambda request: httpx.Response(200), corpus_id=[1, 2])

        with pytest.raises(ValidationError):
            asyncio.run(store.add_documents([Document(page_content="x")]))

    def test_add_vectors_not_supported(self):
        store = make_store(lambda request: httpx.Response(200))

        with pytest.raises(NotImplementedError):
            asyncio.run(store.add_vectors([[1.0]], [Document(page_content="x")]))

    def test_add_files(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"document": {"documentId": "uploaded-1"}})

        store = make_store(handler)

        ids = asyncio.run(store.add_files([VectaraFile(content=b"%PDF-1.4", file_name="a.pdf")], [{"team": "x"}]))

        assert ids == ["uploaded-1"]
        request = requests[0]
        assert request.url.path == "/v1/upload"
        assert request.url.params["c"] == "111"
        assert request.url.params["o"] == "7"
        assert b"a.pdf" in request.content

    def test_add_files_conflict(self):
        store = make_store(lambda request: httpx.Response(409))

        with pytest.raises(UpstreamFailure, match="already exists"):
            asyncio.run(store.add_files([VectaraFile(content=b"x", file_name="a.txt")]))

    def test_delete_by_ids(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={})

        store = make_store(handler)

        asyncio.run(store.delete(ids=["a", "b"]))

        assert [body["document_id"] for body in bodies] == ["a", "b"]

    def test_delete_failure(self):
        store = make_store(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(UpstreamFailure) as exc_info:
            asyncio.run(store.delete(ids=["a"]))

        assert exc_info.value.status == 500

    def test_delete_parameter_validation(self):
        calls = []
        store = make_store(lambda request: calls.append(request) or httpx.Response(200))

        with pytest.raises(ValidationError):
            asyncio.run(store.delete())
        with pytest.raises(ValidationError):
            asyncio.run(store.delete(ids=["a"], delete_all=True))
        with pytest.raises(ValidationError, match="corpus reset"):
            asyncio.run(store.delete(delete_all=True))

        assert calls == []


class TestVectaraQuery:
    """Test query building and response parsing."""

    def test_similarity_search_with_score(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=QUERY_RESPONSE)

        store = make_store(handler)

        results = asyncio.run(store.similarity_search_with_score("what sound do cats make", k=2))

        assert results == [
            (Document(page_content="Cats purr.", metadata={"lang": "eng", "title": "Cats"}), 0.87),
            (Document(page_content="Dogs bark.", metadata={"lang": "eng", "title": "Dogs"}), 0.42),
        ]
        body = json.loads(requests[0].content)["query"][0]
        assert body["numResults"] == 2
        assert body["corpusKey"][0]["corpusId"] == 7
        assert body["contextConfig"] == {"sentencesBefore": 2, "sentencesAfter": 2,
                                         "startTag": "<b>", "endTag": "</b>"}
        assert "summary" not in body

    def test_query_with_filter_mmr_and_summary(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=QUERY_RESPONSE)

        store = make_store(handler, corpus_id=[7, 8])
        vectara_filter = VectaraFilter(filter="doc.rating > 3", lambda_=0.025,
                                       mmr_config=MMRConfig(enabled=True, mmr_top_k=20, diversity_bias=0.3))

        result = asyncio.run(store.vectara_query(
            "cats", 5, vectara_filter, VectaraSummary(enabled=True, max_summarized_results=3)
        ))

        assert result.summary == "Cats purr and dogs bark."
        assert result.scores == [0.87, 0.42]
        body = json.loads(requests[0].content)["query"][0]
        assert body["numResults"] == 20
        assert body["rerankingConfig"] == {"rerankerId": MMR_RERANKER_ID, "mmrConfig": {"diversityBias": 0.3}}
        assert [key["corpusId"] for key in body["corpusKey"]] == [7, 8]
        assert body["corpusKey"][0]["metadataFilter"] == "doc.rating > 3"
        assert body["corpusKey"][0]["lexicalInterpolationConfig"] == {"lambda": 0.025}
        assert body["summary"] == [{"maxSummarizedResults": 3, "responseLang": "eng"}]

    def test_missing_summary_is_empty_string(self):
        response = {"responseSet": [{"response": [], "document": []}]}
        store = make_store(lambda request: httpx.Response(200, json=response))

        result = asyncio.run(store.vectara_query("cats", 3))

        assert result.summary == ""
        assert result.documents == []

    def test_query_http_error(self):
        store = make_store(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(UpstreamFailure) as exc_info:
            asyncio.run(store.similarity_search("cats"))

        assert exc_info.value.status == 503

    def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = make_store(handler)

        with pytest.raises(UpstreamFailure, match="connection refused"):
            asyncio.run(store.similarity_search("cats"))

    def test_vector_search_not_supported(self):
        store = make_store(lambda request: httpx.Response(200))

        with pytest.raises(NotImplementedError):
            asyncio.run(store.similarity_search_vector_with_score([0.1], 1))
