"""
Streaming Module

Transport-side helpers for the two pipelines:

- ``StreamableValue``: ordered channel of partial results with an explicit
  terminal state (done or error)
- ``sanitize_chunk``: JSON round-trip applied to every chunk before it leaves
  the process
- ``prime_stream``: pulls the first chunk of a stream eagerly so that a
  failing provider call is reported before the response is committed
"""

import json
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional

from chatstream.core.logging import get_logger

logger = get_logger(__name__)


class StreamState(str, Enum):
    """Lifecycle of a streamable value"""
    PENDING = "pending"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


def _unserializable(value: Any) -> None:
    return None


def sanitize_chunk(item: Any) -> Any:
    """
    Return a JSON round-tripped copy of a partial output.

    Values JSON cannot represent are replaced with null, the way a
    browser-side ``JSON.parse(JSON.stringify(x))`` would drop them.
    """
    return json.loads(json.dumps(item, default=_unserializable))


class StreamableValue:
    """
    Append-only stream of partial results.

    Values are produced lazily from ``source`` while the stream is iterated.
    Once the stream is done or has failed it is closed for good: ``update``
    raises and no further value is emitted.
    """

    def __init__(self, source: Optional[Iterable[Any]] = None):
        self._source = source
        self._values: List[Any] = []
        self.state = StreamState.PENDING
        self.error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self.state in (StreamState.DONE, StreamState.ERROR)

    @property
    def values(self) -> List[Any]:
        """Values emitted so far"""
        return list(self._values)

    def update(self, value: Any) -> Any:
        if self.closed:
            raise RuntimeError(f"Cannot update a stream that is already {self.state.value}")
        self.state = StreamState.STREAMING
        value = sanitize_chunk(value)
        self._values.append(value)
        return value

    def done(self):
        if self.closed:
            raise RuntimeError(f"Stream is already {self.state.value}")
        self.state = StreamState.DONE

    def fail(self, error: BaseException):
        if self.closed:
            raise RuntimeError(f"Stream is already {self.state.value}")
        self.state = StreamState.ERROR
        self.error = error

    def __iter__(self) -> Iterator[Any]:
        """
        Drive the source and yield each sanitized value.

        A failure in the source moves the stream to ``error`` and is re-raised
        to the caller.
        """
        if self._source is None or self.state is not StreamState.PENDING:
            raise RuntimeError("StreamableValue can only be consumed once")

        source, self._source = self._source, None
        self.state = StreamState.STREAMING
        try:
            for item in source:
                yield self.update(item)
        except Exception as e:
            self.fail(e)
            raise
        self.done()

    def events(self) -> Iterator[Dict[str, Any]]:
        """
        Render the stream as transport events.

        Yields ``{"type": "update", "value": ...}`` per value, then exactly one
        terminal ``{"type": "done"}`` or ``{"type": "error", "error": ...}``.
        """
        try:
            for value in self:
                yield {"type": "update", "value": value}
        except Exception as e:
            logger.error(f"Stream failed after {len(self._values)} updates: {e}")
            yield {"type": "error", "error": str(e)}
            return
        yield {"type": "done"}


def to_sse(event: Dict[str, Any]) -> str:
    """Format one event as a Server-Sent Events data frame"""
    return f"data: {json.dumps(event, default=str)}\n\n"


def prime_stream(
    chunks: Iterator[bytes],
    error_marker: Optional[bytes] = None
) -> Iterator[bytes]:
    """
    Pull the first chunk now and return an iterator over the whole stream.

    Errors raised while fetching the first chunk propagate to the caller.
    Errors raised later are logged and, when ``error_marker`` is given,
    terminate the stream with that marker.
    """
    iterator = iter(chunks)
    try:
        first = next(iterator)
    except StopIteration:
        return iter(())

    def _rest() -> Iterator[bytes]:
        yield first
        try:
            for chunk in iterator:
                yield chunk
        except Exception as e:
            logger.error(f"Stream failed mid-response: {e}")
            if error_marker:
                yield error_marker

    return _rest()
