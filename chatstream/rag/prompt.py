"""
Prompt Template Module

This module holds the fixed prompt templates used by both pipelines and the
helpers that render them.

Templates:
- Condense question: chat history + follow-up -> standalone question
- Answer: retrieved context + standalone question -> grounded answer
- Tool system prompt: instruction sent ahead of the user input in the tool
  pipeline

Variables in templates:
{chat_history} - Formatted prior dialogue turns
{question} - Follow-up or standalone question
{context} - Retrieved document contents
{subject} / {subject_domain} - What the documents are about
"""

from typing import Dict, List, Sequence

from chatstream.core.config import settings
from chatstream.core.logging import get_logger
from chatstream.models.request import ChatMessage, ChatMessageRole

logger = get_logger(__name__)


class PromptTemplate:
    """Base prompt template"""

    def __init__(self, template: str, description: str = ""):
        """
        Initialize prompt template.

        Args:
            template: Template string with {variable} placeholders
            description: Description of the template
        """
        self.template = template
        self.description = description

    def format(self, **kwargs) -> str:
        """Format template with provided variables"""
        try:
            return self.template.format(**kwargs)
        except KeyError as e:
            logger.warning(f"Missing variable in template: {e}")
            raise


class PromptTemplates:
    """Collection of prompt templates"""

    CONDENSE_QUESTION_PROMPT = PromptTemplate(
        template="""Given the following conversation and a follow up question, rephrase the follow up question to be a standalone question, in its original language.

Chat History:
{chat_history}
Follow Up Input: {question}
Standalone question:""",
        description="Rephrases the latest message into a history-independent question"
    )

    ANSWER_PROMPT = PromptTemplate(
        template="""Answer the question based only on the following context:
{context}

Question: {question}

If the context doesn't directly mention "{subject}", you can still provide information about {subject_domain} based on what's available in the context.
Make sure your answer is helpful and indicates it's based on the information provided.
""",
        description="Grounded answer over retrieved context"
    )

    TOOL_SYSTEM_PROMPT = PromptTemplate(
        template="You are a helpful assistant. Use the tools provided to best assist the user.",
        description="System instruction for the tool pipeline"
    )


def format_chat_history(messages: Sequence[ChatMessage]) -> str:
    """Render dialogue turns as ``Human: ...`` / ``Assistant: ...`` lines."""
    turns = []
    for message in messages:
        if message.role == ChatMessageRole.USER:
            turns.append(f"Human: {message.content}")
        elif message.role == ChatMessageRole.ASSISTANT:
            turns.append(f"Assistant: {message.content}")
        else:
            turns.append(f"{message.role.value}: {message.content}")
    return "\n".join(turns)


class PromptBuilder:
    """Builds the prompts of both pipelines from the templates"""

    def __init__(
        self,
        subject: str = settings.ANSWER_SUBJECT,
        subject_domain: str = settings.ANSWER_SUBJECT_DOMAIN
    ):
        self.subject = subject
        self.subject_domain = subject_domain

    def build_condense_prompt(self, chat_history: str, question: str) -> str:
        """Prompt asking the model for a standalone question"""
        return PromptTemplates.CONDENSE_QUESTION_PROMPT.format(
            chat_history=chat_history,
            question=question
        )

    def build_answer_prompt(self, context: str, question: str) -> str:
        """Prompt asking for an answer grounded in ``context``"""
        return PromptTemplates.ANSWER_PROMPT.format(
            context=context,
            question=question,
            subject=self.subject,
            subject_domain=self.subject_domain
        )

    def build_tool_messages(self, user_input: str) -> List[Dict[str, str]]:
        """Two-message prompt: fixed system instruction, then the user input"""
        return [
            {"role": "system", "content": PromptTemplates.TOOL_SYSTEM_PROMPT.template},
            {"role": "user", "content": user_input},
        ]


# Global prompt builder
_prompt_builder = None


def get_prompt_builder() -> PromptBuilder:
    """Get or create prompt builder instance"""
    global _prompt_builder
    if _prompt_builder is None:
        _prompt_builder = PromptBuilder()
    return _prompt_builder
