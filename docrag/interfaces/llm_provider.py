"""Abstract base class for text-generation (LLM) providers."""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAILLMProvider (docrag/providers/llm/)
class ILLMProvider(ABC):
    """Contract for the generation side of the external AI provider.

    The answering service sends exactly two messages: a fixed system
    instruction and a user message carrying the context and question.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
    ) -> str:
        """Generate a completion for a system + user message pair.

        Parameters
        ----------
        system_prompt:
            The instruction message that sets the model's behaviour.
        user_prompt:
            The user message containing the actual request.
        temperature:
            Sampling temperature.
        max_tokens:
            Upper bound on response tokens.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        docrag.utils.errors.LLMError
            If the call fails or returns no content.
        docrag.utils.errors.RateLimitError
            If the provider reports its rate limit was exceeded.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai-gpt-3.5-turbo"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are present."""
