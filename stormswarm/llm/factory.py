"""LLM factory: returns a LangChain BaseChatModel backed by LiteLLM."""

from __future__ import annotations

from functools import lru_cache

from langchain_core.language_models import BaseChatModel
from langchain_litellm import ChatLiteLLM


@lru_cache(maxsize=64)
def get_llm(
    model_name: str = "claude-sonnet-4-20250514",
    temperature: float = 0.7,
    max_tokens: int | None = None,
) -> BaseChatModel:
    """Return a cached LangChain chat model via LiteLLM.

    Supports any model string that LiteLLM understands:
      - "claude-sonnet-4-20250514"
      - "gemini/gemini-2.5-pro"
      - "moonshot/kimi-k2-0711-preview"
      - etc.
    """
    return ChatLiteLLM(model=model_name, temperature=temperature, max_tokens=max_tokens)
