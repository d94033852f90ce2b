import base64
import json

import numpy as np
import pytest
from fastapi.testclient import TestClient

from chatstream.core.config import settings
from chatstream.core.errors import ProviderError
from chatstream.llm.client import ChatChunk, get_llm_client
from chatstream.main import app
from chatstream.rag.chunker import TextChunker
from chatstream.rag.pipeline import ConversationalRetrievalPipeline, get_pipeline
from chatstream.rag.prompt import PromptBuilder
from chatstream.rag.retriever import Retriever
from chatstream.rag.vector_store import RetrievedDocument
from chatstream.services.ingestion import IngestionService, get_ingestion_service
from chatstream.tools.invoker import ToolInvoker, get_tool_invoker


class FakeLLM:
    model = "fake-model"

    def __init__(self, answer=("GymNavigator ", "helps gyms."), fail_after=None, chunks=None):
        self.answer = answer
        self.fail_after = fail_after
        self.chunks = chunks or []
        self.prompts = []

    def verify_connection(self):
        return True

    def generate(self, prompt, temperature=None):
        self.prompts.append(prompt)
        return "What is GymNavigator?"

    def stream(self, prompt, temperature=None):
        for index, piece in enumerate(self.answer):
            if index == self.fail_after:
                raise ProviderError("model overloaded", status_code=503)
            yield piece
        if self.fail_after is not None and self.fail_after >= len(self.answer):
            raise ProviderError("connection reset")

    def stream_chat(self, messages, temperature=None, tools=None, response_schema=None, forced_tool=None):
        for chunk in self.chunks:
            yield chunk


class FakeEmbeddingClient:
    model = "fake-embed"

    def embed_text(self, text):
        return np.array([1.0])

    def embed_batch(self, texts, batch_size=128):
        return [np.array([1.0]) for _ in texts]


class FakeVectorStore:
    def __init__(self, documents=None):
        self.documents = documents or []

    def similarity_search(self, embedding, k=3):
        return self.documents[:k]

    def add_texts(self, texts, embeddings, metadatas=None):
        self.documents.extend(
            RetrievedDocument(content=text, metadata=meta) for text, meta in zip(texts, metadatas)
        )
        return [f"id-{i}" for i in range(len(texts))]

    def get_count(self):
        return len(self.documents)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


def use_pipeline(llm, documents=None):
    retriever = Retriever(vector_store=FakeVectorStore(documents), embedding_client=FakeEmbeddingClient())
    pipeline = ConversationalRetrievalPipeline(
        llm_client=llm, retriever=retriever, prompt_builder=PromptBuilder()
    )
    app.dependency_overrides[get_pipeline] = lambda: pipeline


def test_retrieval_streams_answer_with_citation_headers(client):
    doc = RetrievedDocument(content="GymNavigator is a gym management app.", metadata={"id": 1})
    use_pipeline(FakeLLM(), [doc])

    response = client.post(
        "/api/chat/retrieval",
        json={"messages": [{"role": "user", "content": "What is GymNavigator?"}]},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == "GymNavigator helps gyms."
    assert response.headers["x-message-index"] == "1"
    assert json.loads(base64.b64decode(response.headers["x-sources"])) == [
        {"pageContent": "GymNavigator is a gym management app....", "metadata": {"id": 1}}
    ]


def test_retrieval_empty_messages_is_400(client):
    llm = FakeLLM()
    use_pipeline(llm)

    response = client.post("/api/chat/retrieval", json={"messages": []})

    assert response.status_code == 400
    assert response.json() == {"error": "messages must contain at least one message"}
    assert llm.prompts == []


def test_retrieval_invalid_body_is_400(client):
    use_pipeline(FakeLLM())

    not_json = client.post(
        "/api/chat/retrieval", content="not json", headers={"content-type": "application/json"}
    )
    bad_role = client.post(
        "/api/chat/retrieval", json={"messages": [{"role": "robot", "content": "hi"}]}
    )

    assert not_json.status_code == 400
    assert "error" in not_json.json()
    assert bad_role.status_code == 400


def test_retrieval_provider_failure_before_first_chunk_is_json_error(client):
    use_pipeline(FakeLLM(fail_after=0))

    response = client.post(
        "/api/chat/retrieval",
        json={"messages": [{"role": "user", "content": "What is GymNavigator?"}]},
    )

    assert response.status_code == 503
    assert response.json() == {"error": "model overloaded"}


def test_retrieval_failure_mid_stream_ends_with_marker(client):
    use_pipeline(FakeLLM(fail_after=2))

    response = client.post(
        "/api/chat/retrieval",
        json={"messages": [{"role": "user", "content": "What is GymNavigator?"}]},
    )

    assert response.status_code == 200
    assert response.text == "GymNavigator helps gyms." + settings.STREAM_ERROR_MARKER


def sse_events(response):
    return [
        json.loads(line[len("data: "):])
        for line in response.text.splitlines()
        if line.startswith("data: ")
    ]


def test_tool_invocation_streams_events(client):
    llm = FakeLLM(chunks=[
        ChatChunk(tool_calls=[{"name": "get_weather", "arguments": {"city": "Austin", "state": "TX"}}]),
        ChatChunk(done=True),
    ])
    app.dependency_overrides[get_tool_invoker] = lambda: ToolInvoker(llm_client=llm)

    response = client.post("/api/tools/invoke", json={"input": "What's the weather in Austin, TX?"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert sse_events(response) == [
        {"type": "update", "value": {"city": "Austin", "state": "TX"}},
        {"type": "done"},
    ]


def test_tool_invocation_parse_failure_ends_with_error_event(client):
    llm = FakeLLM(chunks=[ChatChunk(content="I can't help with that.")])
    app.dependency_overrides[get_tool_invoker] = lambda: ToolInvoker(llm_client=llm)

    response = client.post("/api/tools/invoke", json={"input": "weather?"})

    events = sse_events(response)
    assert events[-1]["type"] == "error"
    assert len([e for e in events if e["type"] in ("done", "error")]) == 1


def test_tool_invocation_blank_input_is_400(client):
    app.dependency_overrides[get_tool_invoker] = lambda: ToolInvoker(llm_client=FakeLLM())

    response = client.post("/api/tools/invoke", json={"input": "   "})

    assert response.status_code == 400
    assert "error" in response.json()


def make_ingestion_service(store):
    return IngestionService(
        chunker=TextChunker(),
        embedding_client=FakeEmbeddingClient(),
        vector_store=store,
    )


def test_ingest_then_health(client):
    store = FakeVectorStore()
    service = make_ingestion_service(store)
    app.dependency_overrides[get_ingestion_service] = lambda: service
    app.dependency_overrides[get_llm_client] = lambda: FakeLLM()

    ingested = client.post(
        "/api/retrieval/ingest",
        json={"text": "GymNavigator is a gym management app.", "metadata": {"id": 1}},
    )
    health = client.get("/health")

    assert ingested.status_code == 200
    assert ingested.json()["status"] == "success"
    assert ingested.json()["chunks_created"] == 1
    assert health.json() == {"status": "ok", "llm_ok": True, "documents": 1}


def test_ingest_blank_text_is_400(client):
    service = make_ingestion_service(FakeVectorStore())
    app.dependency_overrides[get_ingestion_service] = lambda: service

    response = client.post("/api/retrieval/ingest", json={"text": "   "})

    assert response.status_code == 400
    assert response.json() == {"error": "text cannot be empty"}
