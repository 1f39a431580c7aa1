"""
LLM Provider - LangChain/OpenRouter adapter for PyMemoria.

This module provides the concrete LanguageModel implementation used for
summary condensation, backed by LangChain's ChatOpenAI pointed at
OpenRouter, with optional Langfuse tracing.
"""

from collections.abc import Collection
from typing import Any, Dict, Optional

from langchain_openai import ChatOpenAI
from langchain_core.messages import SystemMessage, HumanMessage
from langfuse.langchain import CallbackHandler

from pymemoria.config import LLMConfig, LangfuseConfig, get_config
from pymemoria.core.agents.llm_controller import (
    LanguageModel,
    DEFAULT_TERMINATORS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_MAX_TOKENS,
)
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)


def _content_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    # Multi-part message content
    return "".join(
        part.get("text", "") if isinstance(part, dict) else str(part)
        for part in content
    )


class LangChainOpenRouterModel(LanguageModel):
    """
    LanguageModel implementation using LangChain with OpenRouter.
    """

    def __init__(
        self,
        llm_config: Optional[LLMConfig] = None,
        langfuse_config: Optional[LangfuseConfig] = None
    ):
        """
        Initialize the LangChain OpenRouter model.

        Args:
            llm_config: Model settings (defaults to the global config)
            langfuse_config: Tracing settings (defaults to the global config)
        """
        config = get_config()
        self._config = llm_config or config.llm
        langfuse = langfuse_config or config.langfuse

        self._llm = self._build_llm(self._config.temperature, None, self._config.timeout_seconds)

        self._langfuse_handler = None
        if langfuse.enabled:
            self._langfuse_handler = CallbackHandler()

        logger.info(f"Initialized LangChainOpenRouterModel with model: {self._config.model_name}")

    def _build_llm(self, temperature: float, max_tokens: Optional[int], timeout: float) -> ChatOpenAI:
        return ChatOpenAI(
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            model=self._config.model_name,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout
        )

    def _invoke_config(self) -> Dict[str, Any]:
        config: Dict[str, Any] = {}
        if self._langfuse_handler:
            config["callbacks"] = [self._langfuse_handler]
        return config

    def sample_text(
        self,
        prompt: str,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        terminators: Collection[str] = DEFAULT_TERMINATORS,
        temperature: Optional[float] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> str:
        llm = self._build_llm(
            self._config.temperature if temperature is None else temperature,
            max_tokens,
            timeout
        )

        try:
            response = llm.invoke([HumanMessage(content=prompt)], config=self._invoke_config())
        except Exception as e:
            logger.error(f"Error sampling text: {e}")
            raise

        result = _content_text(response.content)
        for terminator in terminators:
            if terminator in result:
                result = result.split(terminator)[0]
        return result

    def generate_with_system_prompt(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: Optional[float] = None,
    ) -> str:
        llm = self._build_llm(
            self._config.temperature if temperature is None else temperature,
            max_tokens,
            self._config.timeout_seconds
        )

        try:
            response = llm.invoke(
                [
                    SystemMessage(content=system_prompt),
                    HumanMessage(content=user_prompt)
                ],
                config=self._invoke_config()
            )
        except Exception as e:
            logger.error(f"Error generating with system prompt: {e}")
            raise

        return _content_text(response.content)

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._config.model_name
