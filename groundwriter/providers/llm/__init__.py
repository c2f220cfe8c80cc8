"""LLM provider adapters.

    OpenAILLMProvider — gpt-4o chat completions and vision (also any
    OpenAI-compatible API via ``OPENAI_BASE_URL``).
"""

from groundwriter.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider"]
