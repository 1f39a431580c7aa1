"""
Agents module - LLM layer for PyMemoria.

This module contains:
- llm_controller: LanguageModel interface and retrying controller
- llm_provider: LangChain/OpenRouter adapter
- summarizer: Summary condensation on top of the controller
"""

from pymemoria.core.agents.llm_controller import (
    LanguageModel,
    LLMController,
    InvalidResponseError
)
from pymemoria.core.agents.llm_provider import (
    LangChainOpenRouterModel
)
from pymemoria.core.agents.summarizer import (
    SummaryCondenser,
    parse_condensed_summary
)

__all__ = [
    "LanguageModel",
    "LLMController",
    "InvalidResponseError",
    "LangChainOpenRouterModel",
    "SummaryCondenser",
    "parse_condensed_summary",
]
