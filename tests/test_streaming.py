import pytest

from chatstream.core.errors import ProviderError
from chatstream.llm.streaming import (
    StreamableValue,
    StreamState,
    prime_stream,
    sanitize_chunk,
    to_sse,
)


def test_update_after_done_raises():
    value = StreamableValue()
    value.update({"city": "Austin"})
    value.done()

    with pytest.raises(RuntimeError):
        value.update({"city": "Boston"})
    assert value.values == [{"city": "Austin"}]
    assert value.state is StreamState.DONE


def test_iteration_emits_values_in_order_then_done():
    value = StreamableValue(iter([{"a": 1}, {"a": 1, "b": 2}]))

    assert value.state is StreamState.PENDING
    assert list(value) == [{"a": 1}, {"a": 1, "b": 2}]
    assert value.state is StreamState.DONE


def test_stream_can_only_be_consumed_once():
    value = StreamableValue(iter([1]))
    list(value)

    with pytest.raises(RuntimeError):
        list(value)


def test_source_failure_moves_stream_to_error():
    def source():
        yield {"city": "Aus"}
        raise ProviderError("upstream closed")

    value = StreamableValue(source())

    with pytest.raises(ProviderError):
        list(value)
    assert value.state is StreamState.ERROR
    assert str(value.error) == "upstream closed"
    assert value.values == [{"city": "Aus"}]


def test_events_end_with_exactly_one_terminal_event():
    def failing():
        yield 1
        raise ProviderError("boom")

    ok = list(StreamableValue(iter([1, 2])).events())
    failed = list(StreamableValue(failing()).events())

    assert ok == [{"type": "update", "value": 1}, {"type": "update", "value": 2}, {"type": "done"}]
    assert failed == [{"type": "update", "value": 1}, {"type": "error", "error": "boom"}]


def test_sanitize_chunk_nulls_unserializable_values():
    sanitized = sanitize_chunk({"city": "Austin", "handle": object()})

    assert sanitized == {"city": "Austin", "handle": None}


def test_to_sse_frame():
    assert to_sse({"type": "done"}) == 'data: {"type": "done"}\n\n'


def test_prime_stream_raises_when_first_chunk_fails():
    def chunks():
        raise ProviderError("model not found", status_code=404)
        yield b""

    with pytest.raises(ProviderError):
        prime_stream(chunks())


def test_prime_stream_appends_marker_on_later_failure():
    def chunks():
        yield b"partial "
        yield b"answer"
        raise ProviderError("connection reset")

    assert list(prime_stream(chunks(), b"[error]")) == [b"partial ", b"answer", b"[error]"]


def test_prime_stream_empty_source():
    assert list(prime_stream(iter([]))) == []
