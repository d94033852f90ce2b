import base64
import json

import numpy as np
import pytest

from chatstream.core.errors import RetrievalError, ValidationError
from chatstream.models.request import ChatMessage
from chatstream.rag.pipeline import (
    ConversationalRetrievalPipeline,
    build_source_manifest,
    response_headers,
)
from chatstream.rag.prompt import PromptBuilder, format_chat_history
from chatstream.rag.retriever import Retriever
from chatstream.rag.vector_store import RetrievedDocument


class FakeLLM:
    model = "fake-model"

    def __init__(self, standalone="What is GymNavigator?", answer=("GymNavigator ", "helps gyms.")):
        self.standalone = standalone
        self.answer = answer
        self.prompts = []
        self.stream_prompts = []

    def generate(self, prompt, temperature=None):
        self.prompts.append(prompt)
        return self.standalone

    def stream(self, prompt, temperature=None):
        self.stream_prompts.append(prompt)
        for chunk in self.answer:
            yield chunk


class FakeEmbeddingClient:
    model = "fake-embed"

    def __init__(self):
        self.inputs = []

    def embed_text(self, text):
        self.inputs.append(text)
        return np.array([1.0])


class FakeVectorStore:
    def __init__(self, documents=None):
        self.documents = documents or []

    def similarity_search(self, embedding, k=3):
        return self.documents[:k]


def make_pipeline(llm=None, documents=None):
    llm = llm or FakeLLM()
    embeddings = FakeEmbeddingClient()
    retriever = Retriever(
        vector_store=FakeVectorStore(documents),
        embedding_client=embeddings,
        top_k=3,
    )
    pipeline = ConversationalRetrievalPipeline(
        llm_client=llm,
        retriever=retriever,
        prompt_builder=PromptBuilder(),
    )
    return pipeline, llm, embeddings


def user(content):
    return ChatMessage(role="user", content=content)


def assistant(content):
    return ChatMessage(role="assistant", content=content)


def test_standalone_question_is_computed_once_and_is_the_only_embedding_input():
    pipeline, llm, embeddings = make_pipeline()
    messages = [user("Tell me about gyms"), assistant("Sure, what about them?"), user("What about it?")]

    prepared = pipeline.prepare(messages)

    assert len(llm.prompts) == 1
    assert "Human: Tell me about gyms\nAssistant: Sure, what about them?" in llm.prompts[0]
    assert "Follow Up Input: What about it?" in llm.prompts[0]
    assert embeddings.inputs == ["What is GymNavigator?"]
    assert prepared.standalone_question == "What is GymNavigator?"
    assert prepared.question == "What about it?"
    assert prepared.message_index == 3


def test_empty_messages_fail_before_any_network_call():
    pipeline, llm, embeddings = make_pipeline()

    with pytest.raises(ValidationError) as exc_info:
        pipeline.prepare([])

    assert exc_info.value.status_code == 400
    assert llm.prompts == []
    assert embeddings.inputs == []


def test_zero_documents_gives_empty_context():
    pipeline, llm, _ = make_pipeline(documents=[])

    prepared = pipeline.prepare([user("What is GymNavigator?")])
    answer = b"".join(pipeline.answer(prepared))

    assert prepared.context == ""
    assert prepared.documents == []
    assert "following context:\n\n\nQuestion: What is GymNavigator?" in llm.stream_prompts[0]
    assert answer == "GymNavigator helps gyms.".encode("utf-8")


def test_gymnavigator_scenario():
    doc = RetrievedDocument(content="GymNavigator is a gym management app.", metadata={"id": 1})
    pipeline, llm, _ = make_pipeline(documents=[doc])

    prepared = pipeline.prepare([user("What is GymNavigator?")])
    list(pipeline.answer(prepared))
    headers = response_headers(prepared)

    assert prepared.context == "GymNavigator is a gym management app."
    assert "GymNavigator is a gym management app.\n\nQuestion:" in llm.stream_prompts[0]
    assert headers["x-message-index"] == "1"
    assert json.loads(base64.b64decode(headers["x-sources"])) == [
        {"pageContent": "GymNavigator is a gym management app....", "metadata": {"id": 1}}
    ]


def test_context_joins_documents_with_blank_line():
    docs = [RetrievedDocument(content="first"), RetrievedDocument(content="second")]
    pipeline, _, _ = make_pipeline(documents=docs)

    prepared = pipeline.prepare([user("q")])

    assert prepared.context == "first\n\nsecond"


def test_source_manifest_truncates_every_entry():
    docs = [RetrievedDocument(content="x" * n, metadata={"n": n}) for n in (0, 10, 50, 51, 200)]

    manifest = build_source_manifest(docs)

    assert len(manifest) == len(docs)
    for entry, doc in zip(manifest, docs):
        assert len(entry["pageContent"]) <= 53
        assert entry["pageContent"].endswith("...")
        assert entry["metadata"] == doc.metadata


def test_identical_inputs_give_identical_question_and_context():
    docs = [RetrievedDocument(content="GymNavigator tracks members.", metadata={"id": 7})]
    messages = [user("Hi"), assistant("Hello"), user("What does it track?")]

    first, _, _ = make_pipeline(documents=docs)
    second, _, _ = make_pipeline(documents=docs)
    a = first.prepare(messages)
    b = second.prepare(messages)

    assert a.standalone_question == b.standalone_question
    assert a.context == b.context


def test_vector_store_failure_becomes_retrieval_error():
    class BrokenVectorStore:
        def similarity_search(self, embedding, k=3):
            raise RuntimeError("connection refused")

    retriever = Retriever(vector_store=BrokenVectorStore(), embedding_client=FakeEmbeddingClient())
    pipeline = ConversationalRetrievalPipeline(
        llm_client=FakeLLM(), retriever=retriever, prompt_builder=PromptBuilder()
    )

    with pytest.raises(RetrievalError):
        pipeline.prepare([user("q")])


def test_format_chat_history_labels_roles():
    messages = [
        user("hi"),
        assistant("hello"),
        ChatMessage(role="system", content="be brief"),
    ]

    assert format_chat_history(messages) == "Human: hi\nAssistant: hello\nsystem: be brief"


def test_answer_prompt_names_the_subject():
    builder = PromptBuilder(subject="GymNavigator", subject_domain="gym management systems")

    prompt = builder.build_answer_prompt(context="ctx", question="q")

    assert 'doesn\'t directly mention "GymNavigator"' in prompt
    assert "information about gym management systems" in prompt
