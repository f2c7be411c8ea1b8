"""
Test Fakes
==========

In-process stand-ins for the LLM provider.
"""

import json
from collections.abc import Callable

from shared.llm import LLMMessage, LLMProvider, LLMResponse, LLMUsage


Reply = str | Exception


class ScriptedLLMProvider(LLMProvider):
    """LLM provider that answers from a callable instead of the network."""

    def __init__(
        self,
        respond: Callable[[list[LLMMessage]], Reply],
        prompt_tokens: int = 100,
        completion_tokens: int = 50,
        cost: float = 0.001,
    ) -> None:
        self._respond = respond
        self._usage = LLMUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
            total_cost=cost,
        )
        self.calls: list[list[LLMMessage]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def model(self) -> str:
        return "scripted-model"

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = None,
        max_tokens: int | None = None,
        stop_sequences: list[str] | None = None,
    ) -> LLMResponse:
        self.calls.append(messages)
        reply = self._respond(messages)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(
            content=reply,
            model=self.model,
            provider=self.name,
            usage=self._usage,
        )

    async def close(self) -> None:
        self.closed = True


def enrichment_reply(
    summary: str = "Summary",
    risk_level: str = "medium",
    obligations: list[tuple[str, str]] | None = None,
    system_types: list[str] | None = None,
) -> str:
    """A well-formed enrichment reply as the model would send it."""
    return json.dumps(
        {
            "summary": summary,
            "riskLevel": risk_level,
            "obligations": [
                {"title": title, "description": description}
                for title, description in (obligations or [])
            ],
            "systemTypes": system_types or [],
        }
    )


def article_number_of(messages: list[LLMMessage]) -> str:
    """Pull ``Article N`` back out of an enrichment prompt."""
    for line in messages[-1].content.splitlines():
        if line.startswith("Article Number: "):
            return line.removeprefix("Article Number: ")
    raise AssertionError("prompt has no article number")
