"""Abstract base class for LLM service providers.

Covers plain chat completion (RAG answers, titles, writing assists) and
image-to-text extraction for screenshot sources.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAILLMProvider (groundwriter/providers/llm/)
class ILLMProvider(ABC):
    """Contract for LLM services.

    Vision is optional and declared via :meth:`supports_vision`.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
            May be empty when the whole instruction lives in *user_prompt*.
        user_prompt:
            The user-facing prompt containing the actual request or data.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on the number of tokens in the response.

        Raises
        ------
        groundwriter.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Return the model's reading of *image_bytes* under *prompt*.

        Raises
        ------
        groundwriter.utils.errors.LLMError
            If vision is unsupported or the API call fails.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if this provider can process image inputs."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has credentials configured."""
