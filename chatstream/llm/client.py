import requests
import json
from dataclasses import dataclass, field
from typing import Iterator, Optional, Dict, Any, List
from abc import ABC, abstractmethod

from chatstream.core.config import settings
from chatstream.core.errors import ProviderError
from chatstream.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class ChatChunk:
    """A complete response or one partial response from the model provider."""

    content: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    done: bool = False


class LLMClient(ABC):
    """Abstract base class for LLM clients"""

    model: str

    @abstractmethod
    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        forced_tool: Optional[str] = None,
    ) -> ChatChunk:
        """Return the whole response at once"""

    @abstractmethod
    def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        forced_tool: Optional[str] = None,
    ) -> Iterator[ChatChunk]:
        """Lazily yield partial responses in the order the provider produces them"""

    def generate(self, prompt: str, temperature: Optional[float] = None) -> str:
        """Send a rendered prompt as a single user message and return the text."""
        message = {"role": "user", "content": prompt}
        return self.chat([message], temperature=temperature).content

    def stream(self, prompt: str, temperature: Optional[float] = None) -> Iterator[str]:
        """Stream the text of a single-prompt completion."""
        message = {"role": "user", "content": prompt}
        for chunk in self.stream_chat([message], temperature=temperature):
            if chunk.content:
                yield chunk.content


class OllamaClient(LLMClient):
    """Ollama chat client (``/api/chat``) with tool and structured output support"""

    def __init__(
        self,
        base_url: str = settings.OLLAMA_BASE_URL,
        model: str = settings.LLM_MODEL_NAME,
        temperature: float = settings.RETRIEVAL_TEMPERATURE,
        timeout: int = settings.LLM_TIMEOUT
    ):
        """
        Initialize Ollama LLM client

        Args:
            base_url: Ollama server base URL
            model: Model name (e.g., 'llama3.2')
            temperature: Default sampling temperature
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

        logger.info(f"Initialized Ollama client with model: {self.model}")

    def verify_connection(self) -> bool:
        """Check the Ollama server is reachable and the model is pulled"""
        try:
            response = requests.get(
                f"{self.base_url}/api/tags",
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to connect to Ollama at {self.base_url}: {e}")
            return False

        logger.info(f"Successfully connected to Ollama at {self.base_url}")
        models = response.json().get("models", [])
        model_names = [m.get("name", "").split(":")[0] for m in models]
        if self.model not in model_names:
            logger.warning(
                f"Model '{self.model}' not found in Ollama. "
                f"Available models: {model_names}. "
                f"Pull it with: ollama pull {self.model}"
            )
        return True

    def _build_payload(
        self,
        messages: List[Dict[str, str]],
        stream: bool,
        temperature: Optional[float] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        forced_tool: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Build request payload for Ollama

        Ollama has no ``tool_choice``: a forced tool is bound alone and the
        leading system message tells the model it must call it. Whether it
        did is checked by the output parser.
        """
        if forced_tool:
            tools = [t for t in tools or [] if t.get("function", {}).get("name") == forced_tool]
            if not tools:
                raise ValueError(f"Forced tool '{forced_tool}' is not among the bound tools")
            instruction = f"You must respond by calling the `{forced_tool}` tool."
            messages = [dict(m) for m in messages]
            if messages and messages[0].get("role") == "system":
                messages[0]["content"] = f"{messages[0]['content']} {instruction}"
            else:
                messages.insert(0, {"role": "system", "content": instruction})

        payload = {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {
                "temperature": self.temperature if temperature is None else temperature,
            },
        }
        if tools:
            payload["tools"] = tools
        if response_schema is not None:
            payload["format"] = response_schema
        return payload

    @staticmethod
    def _parse_chunk(data: Dict[str, Any]) -> ChatChunk:
        message = data.get("message") or {}
        tool_calls = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            arguments = function.get("arguments")
            if isinstance(arguments, str):
                # Some models return the arguments JSON-encoded
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    pass
            tool_calls.append({"name": function.get("name"), "arguments": arguments})
        return ChatChunk(
            content=message.get("content") or "",
            tool_calls=tool_calls,
            done=bool(data.get("done")),
        )

    @staticmethod
    def _provider_error(action: str, error: requests.exceptions.RequestException) -> ProviderError:
        response = getattr(error, "response", None)
        status = response.status_code if response is not None else None
        return ProviderError(f"Ollama {action} failed: {error}", status_code=status)

    def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        forced_tool: Optional[str] = None,
    ) -> ChatChunk:
        """
        Call Ollama and return the complete response

        Raises:
            ProviderError: If the API call fails or returns unreadable JSON
        """
        payload = self._build_payload(
            messages, False, temperature, tools, response_schema, forced_tool
        )
        logger.debug(f"Chat request with model: {self.model} ({len(messages)} messages)")
        try:
            response = requests.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            result = self._parse_chunk(response.json())
        except requests.exceptions.RequestException as e:
            logger.error(f"Error generating response: {e}")
            raise self._provider_error("chat", e) from e
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing Ollama response: {e}")
            raise ProviderError(f"Ollama returned invalid JSON: {e}") from e

        logger.debug(f"Generated response ({len(result.content)} chars)")
        return result

    def stream_chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        response_schema: Optional[Dict[str, Any]] = None,
        forced_tool: Optional[str] = None,
    ) -> Iterator[ChatChunk]:
        """
        Stream partial responses from Ollama

        The HTTP connection is closed as soon as the generator is closed,
        so abandoning the stream aborts the upstream call.

        Raises:
            ProviderError: If the API call fails
        """
        payload = self._build_payload(
            messages, True, temperature, tools, response_schema, forced_tool
        )
        logger.debug(f"Streaming chat with model: {self.model}")
        try:
            with requests.post(
                f"{self.base_url}/api/chat",
                json=payload,
                timeout=self.timeout,
                stream=True
            ) as response:
                response.raise_for_status()
                for line in response.iter_lines():
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                    except json.JSONDecodeError as e:
                        logger.warning(f"Error parsing streaming response line: {e}")
                        continue
                    if "error" in data:
                        raise ProviderError(f"Ollama stream error: {data['error']}")
                    yield self._parse_chunk(data)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error streaming response: {e}")
            raise self._provider_error("stream", e) from e

        logger.debug("Streaming response completed")


class LLMClientFactory:
    """Factory for creating LLM clients"""

    _clients = {
        "ollama": OllamaClient,
    }

    @classmethod
    def create_client(
        cls,
        client_type: str = settings.LLM_TYPE,
        **kwargs
    ) -> LLMClient:
        """
        Create LLM client instance

        Args:
            client_type: Type of client ('ollama')
            **kwargs: Additional arguments for client initialization

        Raises:
            ValueError: If client type is not supported
        """
        if client_type not in cls._clients:
            raise ValueError(
                f"Unsupported LLM client type: {client_type}. "
                f"Supported types: {list(cls._clients.keys())}"
            )

        client_class = cls._clients[client_type]
        logger.info(f"Creating {client_type} LLM client")
        return client_class(**kwargs)


# Default client instance
llm_client: Optional[LLMClient] = None


def get_llm_client() -> LLMClient:
    """Get or create the LLM client"""
    global llm_client
    if llm_client is None:
        llm_client = LLMClientFactory.create_client()
    return llm_client
