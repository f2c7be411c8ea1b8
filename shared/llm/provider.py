"""
LLM Provider Base
=================

Abstract base class and common models for LLM providers.

Providers are constructed explicitly (see `create_llm_provider`) and passed to
the code that needs them; nothing here caches a process-wide instance.

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from shared.config import settings
from shared.config.settings import LLMSettings
from shared.logging import get_logger

logger = get_logger(__name__)


class MessageRole(str, Enum):
    """Message role in conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class LLMMessage(BaseModel):
    """A message in the conversation."""

    role: MessageRole | Literal["system", "user", "assistant"]
    content: str

    def to_dict(self) -> dict[str, str]:
        """Convert to dict for API calls."""
        role_str = self.role.value if isinstance(self.role, MessageRole) else self.role
        return {"role": role_str, "content": self.content}


class LLMUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    # Cost tracking (in USD)
    input_cost: float = 0.0
    output_cost: float = 0.0
    total_cost: float = 0.0


class LLMResponse(BaseModel):
    """Response from LLM provider."""

    content: str = Field(..., description="Generated text content, empty if none")
    model: str = Field(..., description="Model used for generation")
    provider: str = Field(..., description="Provider name")
    usage: LLMUsage = Field(default_factory=LLMUsage)
    finish_reason: str | None = None

    latency_ms: float = 0.0


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Implements the Strategy pattern for swappable LLM backends.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name."""
        ...

    @property
    @abstractmethod
    def model(self) -> str:
        """Model identifier."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        stop_sequences: list[str] | None = None,
    ) -> LLMResponse:
        """
        Generate a completion for the given messages.

        Args:
            messages: Conversation messages
            temperature: Sampling temperature (0.0-1.0)
            max_tokens: Maximum tokens to generate
            stop_sequences: Stop generation at these sequences

        Returns:
            LLMResponse with generated content
        """
        ...

    async def close(self) -> None:
        """Release network resources held by the provider."""
        return None


def create_llm_provider(llm_settings: LLMSettings | None = None) -> LLMProvider:
    """
    Build the configured LLM provider.

    Call once at process start and hand the instance to the components that
    need it.

    Args:
        llm_settings: LLM configuration (default from settings)

    Returns:
        LLMProvider instance
    """
    from shared.llm.claude import ClaudeProvider

    llm_settings = llm_settings or settings.llm
    provider = ClaudeProvider(
        api_key=llm_settings.claude.api_key.get_secret_value(),
        model=llm_settings.claude.model,
        max_tokens=llm_settings.claude.max_tokens,
        temperature=llm_settings.temperature,
        timeout_seconds=llm_settings.timeout_seconds,
    )

    logger.info(
        "llm_provider_initialized",
        provider=provider.name,
        model=provider.model,
    )
    return provider
