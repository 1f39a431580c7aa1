"""
LLM Controller - Language Model abstraction layer for PyMemoria.

This module defines the LanguageModel interface used for summary
condensation and a controller that owns the retry policy around it.
"""

from abc import ABC, abstractmethod
from collections.abc import Collection
from typing import Optional, Tuple

from pymemoria.core.exceptions import MemoryEngineError
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)

# Default configuration values
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TERMINATORS: Tuple[str, ...] = ()
DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_MAX_TOKENS = 2000


class InvalidResponseError(MemoryEngineError):
    """Exception to throw when the model does not produce a usable response."""
    pass


class LanguageModel(ABC):
    """
    Abstract base class for language models.
    """

    @abstractmethod
    def sample_text(
        self,
        prompt: str,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        terminators: Collection[str] = DEFAULT_TERMINATORS,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> str:
        """
        Sample text from the model.

        Args:
            prompt: The initial text to condition on.
            max_tokens: The maximum number of tokens in the response.
            terminators: The response will be terminated before any of these characters.
            temperature: Temperature for the model.
            timeout: Timeout for the request.

        Returns:
            The sampled response (does not include the prompt).

        Raises:
            TimeoutError: If the operation times out.
        """
        raise NotImplementedError

    @abstractmethod
    def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Generate text with a system prompt.

        Args:
            system_prompt: The system prompt to set context
            user_prompt: The user's input
            max_tokens: The maximum number of tokens in the response
            temperature: Sampling temperature (model default if None)

        Returns:
            The generated response
        """
        raise NotImplementedError


class LLMController:
    """
    High-level controller for LLM operations.

    Adds retry logic on top of the base LanguageModel interface. The memory
    engine itself never retries; this is the one place that does.
    """

    def __init__(self, model: LanguageModel, max_retries: int = 3):
        """
        Initialize the LLM controller.

        Args:
            model: The underlying LanguageModel implementation
            max_retries: Maximum number of attempts per call
        """
        self._model = model
        self._max_retries = max(1, max_retries)

    @property
    def model(self) -> LanguageModel:
        return self._model

    def generate(self, system_prompt: str, user_prompt: str, **kwargs) -> str:
        """
        Generate text with automatic retries.

        Args:
            system_prompt: The system prompt to set context
            user_prompt: The user's input
            **kwargs: Additional arguments passed to generate_with_system_prompt

        Returns:
            Generated text
        """
        last_error: Optional[Exception] = None
        for attempt in range(self._max_retries):
            try:
                return self._model.generate_with_system_prompt(system_prompt, user_prompt, **kwargs)
            except Exception as e:
                last_error = e
                logger.warning(f"LLM attempt {attempt + 1}/{self._max_retries} failed: {e}")

        logger.error(f"LLM generation failed after {self._max_retries} attempts")
        raise last_error
