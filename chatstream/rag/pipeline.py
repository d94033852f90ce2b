"""
Conversational Retrieval Pipeline

Answers the latest message of a conversation from documents in the vector
store, streaming the answer back as bytes.

Stages, run in order with no branching other than an error short-circuit:
1. PARSE: split the conversation into prior turns and the latest message
2. CONDENSE: rephrase the latest message into one standalone question
3. RETRIEVE: embed the standalone question, fetch the nearest documents,
   join their contents into the context string
4. ANSWER: render context + standalone question, stream the model output
   as UTF-8 bytes

``prepare`` runs stages 1-3 eagerly; ``answer`` returns the lazy byte stream.
The route attaches the message index and the source manifest as headers.
"""

import base64
import json
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from chatstream.core.config import settings
from chatstream.core.errors import PipelineError, RetrievalError, ValidationError
from chatstream.core.logging import get_logger, log_checkpoint
from chatstream.llm.client import LLMClient, get_llm_client
from chatstream.models.request import ChatMessage
from chatstream.models.response import SourceManifestEntry
from chatstream.rag.prompt import PromptBuilder, format_chat_history, get_prompt_builder
from chatstream.rag.retriever import Retriever, combine_documents, get_retriever
from chatstream.rag.vector_store import RetrievedDocument

logger = get_logger(__name__)


@dataclass
class PreparedAnswer:
    """Everything the answer stage and the response headers need"""

    question: str
    standalone_question: str
    chat_history: str
    context: str
    documents: List[RetrievedDocument] = field(default_factory=list)
    message_index: int = 1


def build_source_manifest(
    documents: Sequence[RetrievedDocument],
    preview_chars: int = settings.SOURCE_PREVIEW_CHARS
) -> List[Dict]:
    """Citation entries: content cut to ``preview_chars`` plus ``...``, and metadata."""
    return [
        SourceManifestEntry(
            page_content=doc.content[:preview_chars] + "...",
            metadata=doc.metadata,
        ).model_dump(by_alias=True, mode="json")
        for doc in documents
    ]


def encode_sources_header(documents: Sequence[RetrievedDocument]) -> str:
    """Base64 of the JSON source manifest, for the ``x-sources`` header"""
    manifest = json.dumps(build_source_manifest(documents), separators=(",", ":"))
    return base64.b64encode(manifest.encode("utf-8")).decode("ascii")


def response_headers(prepared: PreparedAnswer) -> Dict[str, str]:
    return {
        "x-message-index": str(prepared.message_index),
        "x-sources": encode_sources_header(prepared.documents),
    }


class ConversationalRetrievalPipeline:
    """
    History-aware retrieval QA over the vector store.
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        retriever: Optional[Retriever] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        temperature: float = settings.RETRIEVAL_TEMPERATURE,
        top_k: Optional[int] = None
    ):
        self.llm_client = llm_client or get_llm_client()
        self.retriever = retriever or get_retriever()
        self.prompt_builder = prompt_builder or get_prompt_builder()
        self.temperature = temperature
        self.top_k = top_k

        logger.info("Initialized ConversationalRetrievalPipeline")

    # ============ STAGES ============

    def parse(self, messages: Sequence[ChatMessage]) -> Tuple[List[ChatMessage], str]:
        """
        Split the conversation into prior turns and the latest message content.

        Raises:
            ValidationError: If there are no messages
        """
        if not messages:
            raise ValidationError("messages must contain at least one message")

        previous_messages = list(messages[:-1])
        question = messages[-1].content
        log_checkpoint(logger, "parse", history_turns=len(previous_messages), question=question)
        return previous_messages, question

    def condense(self, chat_history: str, question: str) -> str:
        """Rephrase ``question`` into a standalone question (one model call)."""
        prompt = self.prompt_builder.build_condense_prompt(chat_history, question)
        standalone_question = self.llm_client.generate(prompt, temperature=self.temperature).strip()
        log_checkpoint(logger, "condense", standalone_question=standalone_question)
        return standalone_question

    def retrieve(self, standalone_question: str) -> Tuple[List[RetrievedDocument], str]:
        """Fetch documents for the standalone question and build the context string."""
        try:
            documents = self.retriever.retrieve(standalone_question, top_k=self.top_k)
        except PipelineError:
            raise
        except Exception as e:
            logger.error(f"Retrieval failed: {e}")
            raise RetrievalError(f"Retrieval failed: {e}") from e

        context = combine_documents(documents)
        log_checkpoint(logger, "retrieve", documents=len(documents), context_chars=len(context))
        return documents, context

    def answer(self, prepared: PreparedAnswer) -> Iterator[bytes]:
        """Stream the grounded answer as UTF-8 encoded chunks."""
        prompt = self.prompt_builder.build_answer_prompt(
            context=prepared.context,
            question=prepared.standalone_question
        )
        log_checkpoint(logger, "answer", message_index=prepared.message_index)

        total = 0
        for chunk in self.llm_client.stream(prompt, temperature=self.temperature):
            total += len(chunk)
            yield chunk.encode("utf-8")

        log_checkpoint(logger, "answer_complete", answer_chars=total)

    # ============ COMPOSITION ============

    def prepare(self, messages: Sequence[ChatMessage]) -> PreparedAnswer:
        """Run parse, condense and retrieve; the standalone question is computed once."""
        previous_messages, question = self.parse(messages)
        chat_history = format_chat_history(previous_messages)
        standalone_question = self.condense(chat_history, question)
        documents, context = self.retrieve(standalone_question)

        return PreparedAnswer(
            question=question,
            standalone_question=standalone_question,
            chat_history=chat_history,
            context=context,
            documents=documents,
            message_index=len(previous_messages) + 1,
        )


# Global pipeline instance
_pipeline = None


def get_pipeline() -> ConversationalRetrievalPipeline:
    """Get or create retrieval pipeline instance"""
    global _pipeline
    if _pipeline is None:
        _pipeline = ConversationalRetrievalPipeline()
    return _pipeline
