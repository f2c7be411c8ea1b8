"""
Claude Provider
===============

Anthropic Claude API implementation.

Version: 0.1.0
"""

import time
from typing import Any

import anthropic
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.config import settings
from shared.llm.provider import LLMMessage, LLMProvider, LLMResponse, LLMUsage
from shared.logging import get_logger

logger = get_logger(__name__)

# Pricing per 1M tokens (USD)
CLAUDE_PRICING = {
    "claude-3-5-haiku-20241022": {"input": 0.80, "output": 4.00},
    "claude-3-haiku-20240307": {"input": 0.25, "output": 1.25},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
    "claude-3-5-sonnet-20241022": {"input": 3.00, "output": 15.00},
}
DEFAULT_PRICING = {"input": 3.00, "output": 15.00}

RETRYABLE_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


class ClaudeProvider(LLMProvider):
    """
    Anthropic Claude provider implementation.

    Rate-limit, connection and 5xx errors are retried with exponential
    backoff; everything else is raised to the caller on the first attempt.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        timeout_seconds: float | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        """
        Initialize Claude provider.

        Args:
            api_key: Anthropic API key (default from settings)
            model: Model to use (default from settings)
            max_tokens: Default generation limit (default from settings)
            temperature: Default sampling temperature (default from settings)
            timeout_seconds: Request timeout (default from settings)
            client: Pre-built SDK client, mainly for tests
        """
        self._model = model or settings.llm.claude.model
        self._max_tokens = max_tokens or settings.llm.claude.max_tokens
        self._temperature = (
            temperature if temperature is not None else settings.llm.temperature
        )

        if client is None:
            api_key = api_key or settings.llm.claude.api_key.get_secret_value()
            if not api_key:
                raise ValueError("ANTHROPIC_API_KEY environment variable is required")
            client = anthropic.AsyncAnthropic(
                api_key=api_key,
                timeout=timeout_seconds or settings.llm.timeout_seconds,
                # Retries are handled by tenacity below
                max_retries=0,
            )
        self._client = client

        logger.debug("claude_provider_initialized", model=self._model)

    @property
    def name(self) -> str:
        return "claude"

    @property
    def model(self) -> str:
        return self._model

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(settings.llm.max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=60),
        reraise=True,
        before_sleep=lambda retry_state: logger.warning(
            "claude_retry",
            attempt=retry_state.attempt_number,
            wait=retry_state.next_action.sleep,  # type: ignore[union-attr]
        ),
    )
    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        stop_sequences: list[str] | None = None,
    ) -> LLMResponse:
        """
        Generate a completion using Claude.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature (default from settings)
            max_tokens: Max tokens to generate (default from settings)
            stop_sequences: Optional stop sequences

        Returns:
            LLMResponse whose content is the concatenated text blocks
            (empty when the model returned no text)
        """
        start_time = time.perf_counter()

        system_message = None
        api_messages = []

        for msg in messages:
            msg_dict = msg.to_dict()
            if msg_dict["role"] == "system":
                system_message = msg_dict["content"]
            else:
                api_messages.append(msg_dict)

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": api_messages,
            "max_tokens": max_tokens or self._max_tokens,
            "temperature": temperature if temperature is not None else self._temperature,
        }

        if system_message:
            kwargs["system"] = system_message

        if stop_sequences:
            kwargs["stop_sequences"] = stop_sequences

        try:
            response = await self._client.messages.create(**kwargs)
        except (anthropic.BadRequestError, anthropic.AuthenticationError) as e:
            logger.error("claude_request_rejected", error=str(e), error_type=type(e).__name__)
            raise
        except RETRYABLE_ERRORS:
            raise
        except Exception as e:
            logger.error("claude_error", error=str(e), error_type=type(e).__name__)
            raise

        latency_ms = (time.perf_counter() - start_time) * 1000

        content = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

        pricing = CLAUDE_PRICING.get(self._model, DEFAULT_PRICING)
        input_cost = (response.usage.input_tokens / 1_000_000) * pricing["input"]
        output_cost = (response.usage.output_tokens / 1_000_000) * pricing["output"]

        usage = LLMUsage(
            prompt_tokens=response.usage.input_tokens,
            completion_tokens=response.usage.output_tokens,
            total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            input_cost=input_cost,
            output_cost=output_cost,
            total_cost=input_cost + output_cost,
        )

        logger.debug(
            "claude_completion",
            model=self._model,
            total_tokens=usage.total_tokens,
            cost=usage.total_cost,
            latency_ms=round(latency_ms, 2),
        )

        return LLMResponse(
            content=content,
            model=response.model,
            provider=self.name,
            usage=usage,
            finish_reason=response.stop_reason,
            latency_ms=latency_ms,
        )

    async def close(self) -> None:
        await self._client.close()
