"""Backend adapters: the one text-generation capability the core consumes."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from stormswarm.exceptions import BackendError, UnknownBackend
from stormswarm.llm.factory import get_llm
from stormswarm.swarm.profiles import BackendId
from stormswarm.swarm.types import Generation, TokenUsage

if TYPE_CHECKING:
    from stormswarm.config import Settings

logger = logging.getLogger(__name__)


class Backend(Protocol):
    backend_id: BackendId

    async def generate_text(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        system_prompt: str | None = None,
    ) -> Generation: ...


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


class LiteLLMBackend:
    """Calls a model through LangChain + LiteLLM.

    Every failure at this boundary (transport, auth, quota, timeout, empty
    response) is raised as BackendError. No retries.
    """

    def __init__(
        self,
        backend_id: BackendId,
        model_name: str,
        timeout_seconds: float = 300.0,
    ) -> None:
        self.backend_id = BackendId(backend_id)
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds

    async def generate_text(
        self,
        prompt: str,
        *,
        temperature: float,
        max_output_tokens: int,
        system_prompt: str | None = None,
    ) -> Generation:
        messages: list[BaseMessage] = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        llm = get_llm(self.model_name, temperature=temperature, max_tokens=max_output_tokens)
        try:
            call = llm.ainvoke(messages)
            if self.timeout_seconds > 0:
                response = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                response = await call
        except TimeoutError as e:
            raise BackendError(
                self.backend_id, f"call timed out after {self.timeout_seconds:.0f}s"
            ) from e
        except Exception as e:
            raise BackendError(self.backend_id, f"{type(e).__name__}: {e}") from e

        text = response.content if isinstance(response.content, str) else str(response.content)
        if not text.strip():
            raise BackendError(self.backend_id, "malformed response: empty content")

        usage_meta = getattr(response, "usage_metadata", None) or {}
        prompt_tokens = usage_meta.get("input_tokens") or estimate_tokens(
            (system_prompt or "") + prompt
        )
        completion_tokens = usage_meta.get("output_tokens") or estimate_tokens(text)
        return Generation(
            text=text,
            usage=TokenUsage(
                prompt=prompt_tokens,
                completion=completion_tokens,
                total=prompt_tokens + completion_tokens,
            ),
            model=self.model_name,
        )


class BackendPool:
    """The configured backends, keyed by id."""

    def __init__(self, backends: Iterable[Backend] = ()) -> None:
        self._backends: dict[BackendId, Backend] = {}
        for backend in backends:
            self.register(backend)

    def register(self, backend: Backend) -> None:
        self._backends[BackendId(backend.backend_id)] = backend

    def get(self, backend_id: BackendId | str) -> Backend:
        try:
            return self._backends[BackendId(backend_id)]
        except (ValueError, KeyError):
            raise UnknownBackend(str(backend_id)) from None

    @property
    def available(self) -> frozenset[BackendId]:
        return frozenset(self._backends)

    def __contains__(self, backend_id: object) -> bool:
        return backend_id in self._backends

    def __len__(self) -> int:
        return len(self._backends)

    @classmethod
    def from_settings(cls, settings: Settings) -> BackendPool:
        """LiteLLM backends for every enabled backend whose API key is set."""
        pool = cls()
        for backend_id, backend_settings in settings.backends.items():
            if not backend_settings.is_available():
                logger.info(
                    "Backend %s not configured (%s unset or disabled)",
                    backend_id,
                    backend_settings.env_var,
                )
                continue
            pool.register(
                LiteLLMBackend(
                    backend_id,
                    backend_settings.model,
                    timeout_seconds=settings.call_timeout_seconds,
                )
            )
        return pool
