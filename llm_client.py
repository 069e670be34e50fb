"""
LLM Client module for making direct chat-completion calls over HTTP.

Talks to any OpenAI-compatible /chat/completions endpoint with requests,
optionally streaming the response as server-sent events so callers can show
partial output and abort a decision mid-stream.
"""

import asyncio
import json
import random
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import requests
from langfuse import get_client as get_langfuse_client

from session.game_configuration import GameConfiguration, _default_retry_config


@dataclass
class CompletionResult:
    """Result of one completion call."""

    text: str
    model: str
    usage: Optional[Dict[str, int]] = None


class RetryableError(Exception):
    """Exception for errors that should trigger a retry."""

    pass


class RateLimitError(RetryableError):
    """Exception for rate limit errors."""

    pass


class ServerError(RetryableError):
    """Exception for server errors (5xx)."""

    pass


class LLMTimeoutError(RetryableError):
    """Exception for timeout errors."""

    pass


class EmptyResponseError(RetryableError):
    """Exception for responses with no text content."""

    pass


class LLMResponseError(Exception):
    """Non-retryable failure: bad request, malformed response, or retries exhausted."""

    pass


class CompletionCancelled(Exception):
    """Raised when the cancel event is set before or during a completion."""

    pass


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """Simple circuit breaker implementation."""

    def __init__(
        self, failure_threshold: int, recovery_timeout: float, success_threshold: int
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold

        self.failure_count = 0
        self.success_count = 0
        self.state = CircuitState.CLOSED
        self.last_failure_time = 0.0

    def call_succeeded(self):
        """Record a successful call."""
        if self.state == CircuitState.HALF_OPEN:
            self.success_count += 1
            if self.success_count >= self.success_threshold:
                self._close_circuit()
        elif self.state == CircuitState.CLOSED:
            self.failure_count = 0

    def call_failed(self):
        """Record a failed call."""
        self.failure_count += 1
        self.success_count = 0
        self.last_failure_time = time.time()

        if self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN

    def can_execute(self) -> bool:
        """Check if a call can be executed."""
        if self.state == CircuitState.OPEN:
            if time.time() - self.last_failure_time >= self.recovery_timeout:
                self.state = CircuitState.HALF_OPEN
                self.success_count = 0
                return True
            return False
        return True

    def _close_circuit(self):
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0


class CircuitOpenError(Exception):
    """Exception raised when circuit breaker is open."""

    pass


class LLMClient:
    """
    Chat-completion client built on requests.

    One client per endpoint; the model can be overridden per call so a single
    client can serve the decision, advisory and summary roles when they share
    a base URL.
    """

    def __init__(
        self,
        config: Optional[GameConfiguration] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        logger=None,
    ):
        """
        Initialize the LLM client.

        Args:
            config: Scaffold configuration (retry settings, default endpoint)
            model: Default model name for completions
            base_url: Base URL for the API endpoint
            api_key: API key for authentication
            logger: Logger instance for tracking retry attempts
        """
        self.config = config or GameConfiguration()
        self.model = model or self.config.agent_model
        self.base_url = (base_url or self.config.client_base_url).rstrip("/")
        self.api_key = api_key or self.config.get_effective_api_key() or "not-needed"
        self.retry_config = {**_default_retry_config(), **self.config.retry}
        self.logger = logger

        if self.retry_config["circuit_breaker_enabled"]:
            self.circuit_breaker = CircuitBreaker(
                failure_threshold=self.retry_config["circuit_breaker_failure_threshold"],
                recovery_timeout=self.retry_config["circuit_breaker_recovery_timeout"],
                success_threshold=self.retry_config["circuit_breaker_success_threshold"],
            )
        else:
            self.circuit_breaker = None

        self.default_headers = {"X-Title": "ZorkScaffold"}

        self.langfuse_client = None
        try:
            self.langfuse_client = get_langfuse_client()
        except (ValueError, ConnectionError, RuntimeError) as e:
            if self.logger:
                self.logger.warning(
                    f"Langfuse initialization failed, continuing without tracing: {e}",
                    extra={"event_type": "langfuse_init_failed", "error": str(e)},
                )

    @classmethod
    def for_role(
        cls, config: GameConfiguration, role: str, logger=None
    ) -> "LLMClient":
        """
        Build a client for one of 'agent', 'advisor' or 'summary'.

        Picks the role's model and its base URL override, if any.
        """
        models = {
            "agent": config.agent_model,
            "advisor": config.advisor_model,
            "summary": config.summary_model,
        }
        return cls(
            config=config,
            model=models[role],
            base_url=config.get_llm_base_url_for_model(role),
            logger=logger,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        model: Optional[str] = None,
        name: str = "llm-client-call",
    ) -> CompletionResult:
        """
        Run one chat completion with retry, backoff and circuit breaking.

        Args:
            system_prompt: System message prepended to messages
            messages: Conversation messages ({"role", "content"} dicts)
            temperature: Sampling temperature (None = exclude from payload)
            max_tokens: Maximum tokens to generate
            on_chunk: Called with each streamed text delta; enables streaming
            cancel_event: When set, the call stops and raises CompletionCancelled
            model: Model override for this call
            name: Observation name used for tracing

        Returns:
            CompletionResult with the full response text

        Raises:
            CompletionCancelled: cancel_event was set
            CircuitOpenError: the circuit breaker is open
            LLMResponseError: non-retryable failure or retries exhausted
        """
        model = model or self.model

        if self.circuit_breaker and not self.circuit_breaker.can_execute():
            error_msg = "Circuit breaker is open. Service unavailable until recovery timeout."
            if self.logger:
                self.logger.error(
                    error_msg,
                    extra={
                        "event_type": "circuit_breaker_open",
                        "circuit_state": self.circuit_breaker.state.value,
                        "failure_count": self.circuit_breaker.failure_count,
                        "model": model,
                    },
                )
            raise CircuitOpenError(error_msg)

        full_messages = [{"role": "system", "content": system_prompt}, *messages]
        max_attempts = self.retry_config["max_retries"] + 1
        last_exception: Optional[Exception] = None

        for attempt in range(max_attempts):
            self._check_cancelled(cancel_event)
            try:
                result = self._make_request(
                    model=model,
                    messages=full_messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    on_chunk=on_chunk,
                    cancel_event=cancel_event,
                    name=name,
                )
                if self.circuit_breaker:
                    self.circuit_breaker.call_succeeded()
                return result

            except RetryableError as e:
                last_exception = e
                if self.circuit_breaker:
                    self.circuit_breaker.call_failed()

                if attempt >= max_attempts - 1:
                    break

                delay = self._calculate_backoff_delay(attempt)
                if self.logger:
                    self.logger.warning(
                        f"API call failed (attempt {attempt + 1}/{max_attempts}): {e}",
                        extra={
                            "event_type": "llm_retry",
                            "attempt": attempt + 1,
                            "max_attempts": max_attempts,
                            "error_type": type(e).__name__,
                            "error_message": str(e),
                            "backoff_delay": delay,
                            "model": model,
                            "circuit_state": self.circuit_breaker.state.value
                            if self.circuit_breaker
                            else "disabled",
                        },
                    )
                self._sleep(delay, cancel_event)

            except LLMResponseError:
                if self.circuit_breaker:
                    self.circuit_breaker.call_failed()
                raise

        raise LLMResponseError(
            f"LLM API request failed after {max_attempts} attempts. Last error: {last_exception}"
        )

    async def acomplete(
        self,
        system_prompt: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        model: Optional[str] = None,
        name: str = "llm-client-call",
    ) -> CompletionResult:
        """Async wrapper running complete() in a worker thread."""
        return await asyncio.to_thread(
            self.complete,
            system_prompt,
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            on_chunk=on_chunk,
            cancel_event=cancel_event,
            model=model,
            name=name,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CompletionCancelled("Completion cancelled")

    def _sleep(self, delay: float, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is None:
            time.sleep(delay)
        elif cancel_event.wait(delay):
            raise CompletionCancelled("Completion cancelled during backoff")

    def _calculate_backoff_delay(self, attempt: int) -> float:
        """Calculate the delay for exponential backoff with jitter."""
        delay = self.retry_config["initial_delay"] * (
            self.retry_config["exponential_base"] ** attempt
        )
        delay = min(delay, self.retry_config["max_delay"])

        if self.retry_config["jitter_factor"] > 0:
            delay += delay * self.retry_config["jitter_factor"] * random.random()

        return delay

    def _classify_error(
        self, response: requests.Response = None, exception: Exception = None
    ) -> Optional[Exception]:
        """Classify an error to determine if it should trigger a retry."""
        if response is not None:
            status_code = response.status_code

            if status_code == 429 and self.retry_config["retry_on_rate_limit"]:
                return RateLimitError(f"Rate limit error: {status_code}")

            # Some providers report rate limits with a 400 and a message
            response_text = (response.text or "").lower()
            if self.retry_config["retry_on_rate_limit"] and any(
                phrase in response_text
                for phrase in ["rate limit", "too many requests", "quota exceeded"]
            ):
                return RateLimitError(f"Rate limit detected in response: {response.text[:200]}")

            if 500 <= status_code < 600 and self.retry_config["retry_on_server_error"]:
                return ServerError(f"Server error: {status_code}")

            return None

        if exception is not None:
            if isinstance(exception, requests.exceptions.Timeout):
                if self.retry_config["retry_on_timeout"]:
                    return LLMTimeoutError(f"Request timeout: {exception}")
                return None
            if isinstance(exception, requests.exceptions.RequestException):
                return RetryableError(f"Network error: {exception}")

        return None

    def _make_request(
        self,
        model: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float],
        max_tokens: Optional[int],
        on_chunk: Optional[Callable[[str], None]],
        cancel_event: Optional[threading.Event],
        name: str,
    ) -> CompletionResult:
        """Build the payload and execute it, traced when Langfuse is available."""
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            **self.default_headers,
        }

        # Single source of truth for both payload and tracing
        model_parameters: Dict[str, Any] = {}
        if temperature is not None:
            model_parameters["temperature"] = temperature
        if max_tokens is not None:
            model_parameters["max_tokens"] = max_tokens

        payload: Dict[str, Any] = {"model": model, "messages": messages, **model_parameters}
        if on_chunk is not None:
            payload["stream"] = True

        observation = None
        if self.langfuse_client:
            try:
                observation = self.langfuse_client.start_as_current_observation(
                    name=name,
                    as_type="generation",
                    model=model,
                    input=messages,
                    model_parameters=model_parameters,
                )
            except (ConnectionError, RuntimeError, ValueError) as e:
                if self.logger:
                    self.logger.warning(
                        f"Langfuse generation tracking failed, continuing without tracing: {e}",
                        extra={"event_type": "langfuse_tracking_failed", "error": str(e)},
                    )

        if observation is None:
            return self._execute_request(url, headers, payload, on_chunk, cancel_event)

        with observation as generation:
            result = self._execute_request(url, headers, payload, on_chunk, cancel_event)
            generation.update(output=result.text)
            usage_details = self._extract_usage_details(result.usage)
            if usage_details:
                generation.update(usage_details=usage_details)
            return result

    def _extract_usage_details(self, usage: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Map OpenAI-style usage fields to Langfuse usage details.

        prompt_tokens -> input, completion_tokens -> output, total_tokens -> total.
        Returns None for empty or non-dict usage.
        """
        if not usage or not isinstance(usage, dict):
            return None

        mapping = {
            "prompt_tokens": "input",
            "completion_tokens": "output",
            "total_tokens": "total",
        }
        usage_details = {target: usage[source] for source, target in mapping.items() if source in usage}
        return usage_details or None

    def _execute_request(
        self,
        url: str,
        headers: Dict[str, str],
        payload: Dict[str, Any],
        on_chunk: Optional[Callable[[str], None]],
        cancel_event: Optional[threading.Event],
    ) -> CompletionResult:
        """
        Execute the HTTP request and parse the response.

        Raises:
            RetryableError: transient failure worth retrying
            LLMResponseError: non-retryable HTTP error or malformed response
        """
        streaming = payload.get("stream", False)
        try:
            response = requests.post(
                url,
                headers=headers,
                json=payload,
                timeout=self.retry_config["timeout_seconds"],
                stream=streaming,
            )

            if not response.ok:
                retryable_error = self._classify_error(response=response)
                if retryable_error:
                    raise retryable_error
                raise LLMResponseError(f"HTTP {response.status_code}: {response.text}")

            if streaming:
                result = self._read_stream(response, payload["model"], on_chunk, cancel_event)
            else:
                result = self._read_body(response.json(), payload["model"])

        except requests.exceptions.RequestException as e:
            retryable_error = self._classify_error(exception=e)
            if retryable_error:
                raise retryable_error
            raise LLMResponseError(f"Request failed: {e}")
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise LLMResponseError(f"Invalid LLM API response format: {e}")

        if not result.text.strip():
            raise EmptyResponseError(f"Empty response from model {result.model}")
        return result

    @staticmethod
    def _read_body(response_data: Dict[str, Any], default_model: str) -> CompletionResult:
        if not response_data.get("choices"):
            raise ValueError("No valid choices in response")
        content = response_data["choices"][0]["message"]["content"] or ""
        return CompletionResult(
            text=content,
            model=response_data.get("model", default_model),
            usage=response_data.get("usage"),
        )

    def _read_stream(
        self,
        response: requests.Response,
        default_model: str,
        on_chunk: Callable[[str], None],
        cancel_event: Optional[threading.Event],
    ) -> CompletionResult:
        """Consume `data:` server-sent-event lines until [DONE]."""
        parts: List[str] = []
        model = default_model
        usage = None

        # SSE bodies are UTF-8; requests would otherwise assume ISO-8859-1 for text/*
        response.encoding = "utf-8"
        try:
            for line in response.iter_lines(decode_unicode=True):
                if cancel_event is not None and cancel_event.is_set():
                    raise CompletionCancelled("Completion cancelled while streaming")
                if not line or not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break

                event = json.loads(data)
                model = event.get("model", model)
                if event.get("usage"):
                    usage = event["usage"]
                for choice in event.get("choices") or []:
                    delta = (choice.get("delta") or {}).get("content")
                    if delta:
                        parts.append(delta)
                        on_chunk(delta)
        finally:
            response.close()

        return CompletionResult(text="".join(parts), model=model, usage=usage)
