"""Text generation sources."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator

import httpx

from .core import ProjectMetadata, Turn
from .errors import GenerationError

logger = logging.getLogger(__name__)

GENERATE = "generate"
EXPAND = "expand"
ACTIONS = (GENERATE, EXPAND)


@dataclass
class GenerationRequest:
    """Everything the generation service needs for one reply."""

    instruction: str
    action: str = GENERATE
    context: list[str] = field(default_factory=list)  # "user: ..." / "assistant: ..." lines
    title: str = ""
    briefing: dict = field(default_factory=dict)

    @classmethod
    def build(cls, instruction: str, history: list[Turn], metadata: ProjectMetadata, action: str = GENERATE):
        """Assemble a request from finalized history and current metadata."""
        context = [f"{t.role}: {t.response_text}" for t in history if not t.pending and not t.failed]
        snapshot = metadata.snapshot()
        return cls(
            instruction=instruction,
            action=action,
            context=context,
            title=snapshot.title,
            briefing=snapshot.briefing,
        )

    def to_payload(self) -> dict:
        return {
            "action": self.action,
            "outline": self.instruction,
            "conversationContext": "\n".join(self.context),
            "title": self.title,
            "briefing": self.briefing,
        }


class TextGenerator(ABC):
    """A remote service that answers with a stream of text fragments."""

    @abstractmethod
    def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        """Yield text fragments until the reply is complete.

        Raises :class:`GenerationError` if the stream cannot be opened or
        breaks off.
        """
        ...

    async def close(self) -> None:
        return None


class HttpTextGenerator(TextGenerator):
    """Streams a plain-text reply from an HTTP endpoint."""

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._owns_client = client is None
        # The caller applies the overall generation timeout; only guard the connect.
        self.client = client or httpx.AsyncClient(headers=headers, timeout=httpx.Timeout(None, connect=10.0))

    async def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        try:
            async with self.client.stream("POST", self.endpoint, json=request.to_payload()) as resp:
                if resp.status_code != 200:
                    await resp.aread()
                    raise GenerationError(f"Generation request failed with {resp.status_code}: {resp.text[:200]}")
                async for chunk in resp.aiter_text():
                    yield chunk
        except httpx.HTTPError as e:
            raise GenerationError(f"Generation stream broke off: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
