# ABOUTME: Tests for LLMClient HTTP calls with requests.post mocked out
# ABOUTME: Covers payloads, retry classification, streaming, cancellation and the circuit breaker

import json
import threading
from unittest.mock import Mock, patch

import pytest
import requests

from llm_client import (
    CircuitOpenError,
    CircuitState,
    CompletionCancelled,
    LLMClient,
    LLMResponseError,
)
from session.game_configuration import GameConfiguration


def fast_retry(**overrides):
    retry = {"max_retries": 2, "initial_delay": 0.0, "jitter_factor": 0.0}
    retry.update(overrides)
    return retry


def json_response(content="LOOK", status_code=200, usage=None, text=""):
    response = Mock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.text = text
    body = {"model": "served-model", "choices": [{"message": {"content": content}}]}
    if usage:
        body["usage"] = usage
    response.json.return_value = body
    return response


def stream_response(*deltas):
    lines = [": keep-alive", ""]
    for delta in deltas:
        lines.append("data: " + json.dumps({"model": "served-model", "choices": [{"delta": {"content": delta}}]}))
    lines.append("data: [DONE]")
    response = Mock()
    response.ok = True
    response.status_code = 200
    response.iter_lines.return_value = iter(lines)
    return response


@pytest.fixture(autouse=True)
def no_tracing():
    with patch("llm_client.get_langfuse_client", return_value=None):
        yield


@pytest.fixture
def config():
    return GameConfiguration(
        client_base_url="http://llm.test/v1/",
        client_api_key="sk-test",
        retry=fast_retry(),
    )


@pytest.fixture
def client(config):
    return LLMClient(config=config, model="tiny-actor")


@pytest.fixture
def post():
    with patch("llm_client.requests.post") as mock_post:
        yield mock_post


class TestRequest:
    def test_success_and_payload(self, client, post):
        post.return_value = json_response("open mailbox")

        result = client.complete(
            "Play.", [{"role": "user", "content": "state"}], temperature=0.2, max_tokens=20
        )

        assert result.text == "open mailbox"
        assert result.model == "served-model"
        args, kwargs = post.call_args
        assert args[0] == "http://llm.test/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"] == {
            "model": "tiny-actor",
            "messages": [
                {"role": "system", "content": "Play."},
                {"role": "user", "content": "state"},
            ],
            "temperature": 0.2,
            "max_tokens": 20,
        }
        assert kwargs["stream"] is False

    def test_unset_sampling_is_left_out(self, client, post):
        post.return_value = json_response()

        client.complete("Play.", [], model="other-model")

        payload = post.call_args.kwargs["json"]
        assert "temperature" not in payload
        assert "max_tokens" not in payload
        assert payload["model"] == "other-model"

    def test_for_role_uses_role_model_and_url(self):
        config = GameConfiguration(advisor_model="hint-model", advisor_base_url="http://hints/v1")

        client = LLMClient.for_role(config, "advisor")

        assert client.model == "hint-model"
        assert client.base_url == "http://hints/v1"

    def test_usage_mapping(self, client):
        usage = {"prompt_tokens": 10, "completion_tokens": 2, "total_tokens": 12}
        assert client._extract_usage_details(usage) == {"input": 10, "output": 2, "total": 12}
        assert client._extract_usage_details({}) is None
        assert client._extract_usage_details(None) is None


class TestRetries:
    def test_server_error_is_retried(self, client, post):
        post.side_effect = [json_response(status_code=500, text="boom"), json_response("N")]

        assert client.complete("Play.", []).text == "N"
        assert post.call_count == 2

    def test_bad_request_is_not_retried(self, client, post):
        post.return_value = json_response(status_code=400, text="bad request")

        with pytest.raises(LLMResponseError, match="HTTP 400"):
            client.complete("Play.", [])
        assert post.call_count == 1

    def test_rate_limit_message_is_retried(self, client, post):
        post.side_effect = [
            json_response(status_code=400, text="Rate limit reached"),
            json_response("S"),
        ]

        assert client.complete("Play.", []).text == "S"

    def test_retries_exhausted(self, client, post):
        post.return_value = json_response(status_code=503, text="unavailable")

        with pytest.raises(LLMResponseError, match="after 3 attempts"):
            client.complete("Play.", [])
        assert post.call_count == 3

    def test_empty_response_is_retried(self, client, post):
        post.side_effect = [json_response("   "), json_response("LOOK")]

        assert client.complete("Play.", []).text == "LOOK"

    def test_timeout_is_retried(self, client, post):
        post.side_effect = [requests.exceptions.Timeout("slow"), json_response("E")]

        assert client.complete("Play.", []).text == "E"

    def test_malformed_body(self, client, post):
        response = json_response()
        response.json.return_value = {"choices": []}
        post.return_value = response

        with pytest.raises(LLMResponseError, match="Invalid LLM API response format"):
            client.complete("Play.", [])


class TestStreaming:
    def test_chunks_are_forwarded(self, client, post):
        response = stream_response("OPEN", " MAIL", "BOX")
        post.return_value = response
        chunks = []

        result = client.complete("Play.", [], on_chunk=chunks.append)

        assert chunks == ["OPEN", " MAIL", "BOX"]
        assert result.text == "OPEN MAILBOX"
        assert post.call_args.kwargs["json"]["stream"] is True
        assert post.call_args.kwargs["stream"] is True
        response.close.assert_called_once()

    def test_stream_is_decoded_as_utf8(self, client, post):
        response = stream_response("EXAMINE ", "CAFÉ")
        response.encoding = "ISO-8859-1"
        post.return_value = response

        result = client.complete("Play.", [], on_chunk=lambda chunk: None)

        assert response.encoding == "utf-8"
        assert result.text == "EXAMINE CAFÉ"
        response.iter_lines.assert_called_once_with(decode_unicode=True)

    def test_cancel_before_call(self, client, post):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(CompletionCancelled):
            client.complete("Play.", [], cancel_event=cancel)
        post.assert_not_called()

    def test_cancel_mid_stream(self, client, post):
        response = stream_response("NOR", "TH")
        post.return_value = response
        cancel = threading.Event()
        chunks = []

        def on_chunk(chunk):
            chunks.append(chunk)
            cancel.set()

        with pytest.raises(CompletionCancelled):
            client.complete("Play.", [], on_chunk=on_chunk, cancel_event=cancel)

        assert chunks == ["NOR"]
        response.close.assert_called_once()
        assert post.call_count == 1

    @pytest.mark.asyncio
    async def test_acomplete(self, client, post):
        post.return_value = json_response("W")

        result = await client.acomplete("Play.", [], max_tokens=5)

        assert result.text == "W"
        assert post.call_args.kwargs["json"]["max_tokens"] == 5


class TestCircuitBreaker:
    def test_opens_after_repeated_failures(self, post):
        config = GameConfiguration(
            retry=fast_retry(max_retries=0, circuit_breaker_failure_threshold=2)
        )
        client = LLMClient(config=config)
        post.return_value = json_response(status_code=500, text="down")

        for _ in range(2):
            with pytest.raises(LLMResponseError):
                client.complete("Play.", [])

        assert client.circuit_breaker.state is CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            client.complete("Play.", [])
        assert post.call_count == 2

    def test_disabled_breaker(self):
        config = GameConfiguration(retry=fast_retry(circuit_breaker_enabled=False))
        assert LLMClient(config=config).circuit_breaker is None
