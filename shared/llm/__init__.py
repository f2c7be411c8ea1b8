"""
LLM Provider Module
===================

Abstraction layer over the text-analysis service used for enrichment.

Usage:
    from shared.llm import create_llm_provider, LLMMessage

    provider = create_llm_provider()

    response = await provider.complete(
        messages=[
            LLMMessage(role="system", content="You are a regulatory expert."),
            LLMMessage(role="user", content="Summarise DORA Article 11."),
        ]
    )
    print(response.content)
"""

from shared.llm.claude import ClaudeProvider
from shared.llm.provider import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    LLMUsage,
    create_llm_provider,
)

__all__ = [
    # Base
    "LLMProvider",
    "LLMMessage",
    "LLMResponse",
    "LLMUsage",
    "create_llm_provider",
    # Providers
    "ClaudeProvider",
]
