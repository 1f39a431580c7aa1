"""
Summary Condenser - LLM-backed condensation of summaries.

Implements the ``condense(texts, framing) -> str`` capability consumed by
the summary consolidation pipeline.
"""

import json
import re
from typing import Callable, List, Optional

from pymemoria.config import get_config
from pymemoria.core.agents.llm_controller import InvalidResponseError, LLMController
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)

SYSTEM_PROMPT_TEMPLATE = """
# CURRENT SUMMARIES
{current_summaries}

# MAIN GOAL
You are the summarization aspect of {agent_name}'s thoughts.

{agent_name} holds 5 short term summaries, 3 mid term summaries and 1 long term summary in memory.
Every 5 short term summaries get condensed into 1 mid term summary, every 3 mid term summaries get condensed
into 1 long term summary, condensing the previous existing long term summary into this new one.

In order to keep {agent_name}'s memory concise and manageable, you must condense the summaries to maintain
a sense of time in the present.

Use the current summaries as a REFERENCE in condensing summaries. The summaries to condense are provided below.

# OUTPUT FORMAT
Respond with JSON only: {{"condensed_summary": "<3-4 sentence narrative summary; a long term summary may use up to 6 sentences>"}}
"""


def parse_condensed_summary(response: str) -> str:
    """
    Extract the condensed summary from a model reply.

    Accepts a JSON object with a ``condensed_summary`` field (optionally in a
    code fence) and falls back to the plain reply text otherwise.

    Raises:
        InvalidResponseError: If the reply holds no summary text
    """
    text = (response or "").strip()
    fenced = _CODE_FENCE.match(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        payload = json.loads(text)
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        summary = payload.get("condensed_summary")
        if not isinstance(summary, str) or not summary.strip():
            raise InvalidResponseError("Model reply has no condensed_summary")
        return summary.strip()

    if not text:
        raise InvalidResponseError("Model returned an empty summary")
    return text


class SummaryCondenser:
    """
    Condenses summaries with the summary-agent prompt.
    """

    def __init__(
        self,
        controller: LLMController,
        agent_name: Optional[str] = None,
        current_summaries: Optional[Callable[[], str]] = None
    ):
        """
        Initialize the condenser.

        Args:
            controller: LLM controller (owns retries)
            agent_name: Name of the agent whose memory is condensed
            current_summaries: Provides the active summaries block shown to
                the model as reference
        """
        self._controller = controller
        self._agent_name = agent_name or get_config().agent.name
        self._current_summaries = current_summaries

    def system_prompt(self) -> str:
        current = self._current_summaries() if self._current_summaries else "No active summaries found."
        return SYSTEM_PROMPT_TEMPLATE.format(current_summaries=current, agent_name=self._agent_name)

    @staticmethod
    def user_prompt(texts: List[str], framing: str) -> str:
        return framing + "[CURRENT SUMMARIES TO CONDENSE]\n\n" + "\n\n".join(texts)

    def __call__(self, texts: List[str], framing: str) -> str:
        """
        Condense texts into one summary.

        Args:
            texts: Summaries to condense, oldest first
            framing: Tier-specific instruction

        Returns:
            The condensed summary
        """
        response = self._controller.generate(self.system_prompt(), self.user_prompt(texts, framing))
        summary = parse_condensed_summary(response)
        logger.info(f"Condensed {len(texts)} summaries into {len(summary)} characters")
        return summary
