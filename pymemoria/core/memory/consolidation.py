"""
Summary Consolidation - Three-tier hierarchical summarization.

Session summaries enter the short tier. Once enough of them pile up, the
oldest are condensed into a mid-tier summary; mid-tier summaries in turn
are condensed into the single long-term summary, which is merged with its
predecessor rather than stacked next to it.

Condensation is delegated to an external callable ``condense(texts,
framing) -> str`` (normally an LLM). This module never retries it: a
failed condensation leaves its sources unprocessed, so the next pass picks
them up again.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository
from pymemoria.data.schemas.models import ActiveSummaries, Summary, SummaryTier
from pymemoria.utils.converters import format_timestamp
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)

Condenser = Callable[[List[str], str], str]

MERGE_LONG_FRAMING = "### YOU ARE CURRENTLY CONDENSING A NEW LONG TERM SUMMARY INTO THE EXISTING ONE\n\n"


@dataclass(frozen=True)
class TierRule:
    """
    Consolidation rule for one source tier.

    Attributes:
        fetch: Unprocessed summaries fetched when checking the tier
        consume: How many of the oldest are condensed once fetch is reached
        target: Tier the condensed summary is written to
        framing: Instruction prepended to the condensation prompt
    """
    fetch: int
    consume: int
    target: SummaryTier
    framing: str


TIER_RULES: Dict[SummaryTier, TierRule] = {
    SummaryTier.SHORT: TierRule(
        fetch=6,
        consume=5,
        target=SummaryTier.MID,
        framing="### YOU ARE CURRENTLY SUMMARIZING 5 SHORT TERM SUMMARIES INTO 1 MID TERM SUMMARY\n\n",
    ),
    SummaryTier.MID: TierRule(
        fetch=3,
        consume=3,
        target=SummaryTier.LONG,
        framing="### YOU ARE CURRENTLY SUMMARIZING 3 MID TERM SUMMARIES INTO 1 LONG TERM SUMMARY\n\n",
    ),
}


class SummaryPipeline:
    """
    Watches summary tier populations and condenses them upward.
    """

    def __init__(self, repository: DuckDBMemoryRepository, condense: Condenser):
        """
        Initialize the pipeline.

        Args:
            repository: Summary storage
            condense: External condensation capability
        """
        self._repository = repository
        self._condense = condense

    def _condense_texts(self, texts: List[str], framing: str) -> str:
        try:
            return self._condense(texts, framing)
        except Exception as e:
            logger.error(f"Error condensing {len(texts)} summaries: {e}")
            raise

    def save_short_summary(self, text: str, session_id: Optional[str] = None) -> Summary:
        """Store the summary of one activity session in the short tier."""
        try:
            return self._repository.save_summary(SummaryTier.SHORT, text, session_id=session_id)
        except Exception as e:
            logger.error(f"Error saving short-term summary: {e}")
            raise

    def check_short(self, session_id: Optional[str] = None) -> Optional[Summary]:
        """
        Condense the oldest short-term summaries into a mid-term one.

        Nothing happens until 6 unprocessed short summaries exist; then the
        oldest 5 are condensed and marked processed, and the 6th stays.

        Args:
            session_id: Session recorded on the new mid summary (defaults to
                the newest consumed summary's session)

        Returns:
            The new mid-term summary, or None if the tier was not full
        """
        rule = TIER_RULES[SummaryTier.SHORT]
        try:
            pending = self._repository.get_unprocessed_summaries(SummaryTier.SHORT, limit=rule.fetch)
        except Exception as e:
            logger.error(f"Error fetching short-term summaries: {e}")
            raise

        if len(pending) < rule.fetch:
            logger.debug(f"{len(pending)} unprocessed short-term summaries; nothing to consolidate")
            return None

        consumed = pending[:rule.consume]
        text = self._condense_texts([s.text for s in consumed], rule.framing)

        try:
            summary = self._repository.commit_consolidation(
                rule.target,
                text,
                session_id if session_id is not None else consumed[-1].session_id,
                [s.id for s in consumed],
            )
        except Exception as e:
            logger.error(f"Error saving mid-term summary: {e}")
            raise

        logger.info(f"Condensed {len(consumed)} short-term summaries into mid-term summary {summary.id}")
        return summary

    def check_mid(self) -> Optional[Summary]:
        """
        Condense mid-term summaries into the long-term summary.

        Once 3 unprocessed mid summaries exist they are condensed and
        folded into the long tier through merge_long.

        Returns:
            The new long-term summary, or None if the tier was not full
        """
        rule = TIER_RULES[SummaryTier.MID]
        try:
            pending = self._repository.get_unprocessed_summaries(SummaryTier.MID, limit=rule.fetch)
        except Exception as e:
            logger.error(f"Error fetching mid-term summaries: {e}")
            raise

        if len(pending) < rule.fetch:
            logger.debug(f"{len(pending)} unprocessed mid-term summaries; nothing to consolidate")
            return None

        consumed = pending[:rule.consume]
        text = self._condense_texts([s.text for s in consumed], rule.framing)
        summary = self.merge_long(text, consumed_ids=[s.id for s in consumed])

        logger.info(f"Condensed {len(consumed)} mid-term summaries into long-term summary {summary.id}")
        return summary

    def merge_long(self, new_text: str, consumed_ids: Sequence[int] = ()) -> Summary:
        """
        Make new_text the long-term summary, merging it with the current one.

        With an existing unprocessed long summary, the two are condensed
        together and the old one is marked processed. The new summary, the
        processed flags of consumed_ids and of the old long summary are all
        written in one transaction.

        Args:
            new_text: Freshly condensed long-term text
            consumed_ids: Mid summaries that produced new_text

        Returns:
            The new unprocessed long-term summary
        """
        try:
            current = self._repository.get_unprocessed_summaries(SummaryTier.LONG, limit=1, ascending=False)
        except Exception as e:
            logger.error(f"Error fetching long-term summary: {e}")
            raise

        processed_ids = list(consumed_ids)
        if current:
            existing = current[0]
            new_text = self._condense_texts([existing.text, new_text], MERGE_LONG_FRAMING)
            processed_ids.append(existing.id)

        try:
            summary = self._repository.commit_consolidation(SummaryTier.LONG, new_text, None, processed_ids)
        except Exception as e:
            logger.error(f"Error saving long-term summary: {e}")
            raise

        if current:
            logger.info(f"Merged long-term summary {current[0].id} into {summary.id}")
        return summary

    def consolidate(self, session_id: Optional[str] = None) -> None:
        """
        Run one consolidation pass: short tier first, then mid tier.

        Short-tier work is committed before the mid tier is checked, so a
        mid summary produced here already counts toward the next set of 3.
        """
        self.check_short(session_id)
        self.check_mid()

    def get_active(self) -> ActiveSummaries:
        """Unprocessed summaries of every tier, oldest first within a tier."""
        try:
            long_summaries = self._repository.get_unprocessed_summaries(SummaryTier.LONG, limit=1, ascending=False)
            return ActiveSummaries(
                long=long_summaries[0] if long_summaries else None,
                mid=self._repository.get_unprocessed_summaries(SummaryTier.MID),
                short=self._repository.get_unprocessed_summaries(SummaryTier.SHORT),
            )
        except Exception as e:
            logger.error(f"Error retrieving active summaries: {e}")
            raise

    def get_active_summaries(self) -> str:
        """
        Format the active summaries for prompt injection.

        Returns:
            The long-term summary, then mid-term and short-term summaries
            (oldest first), each under its timestamp
        """
        active = self.get_active()
        sections = []

        if active.long:
            sections.append(
                f"### LONG TERM SUMMARY\n[{format_timestamp(active.long.created_at)}]\n{active.long.text}\n"
            )

        if active.mid:
            sections.append("### MID-TERM SUMMARIES")
            sections.extend(f"[{format_timestamp(s.created_at)}]\n{s.text}\n" for s in active.mid)

        if active.short:
            sections.append("### SHORT-TERM SUMMARIES")
            sections.extend(f"[{format_timestamp(s.created_at)}]\n{s.text}\n" for s in active.short)

        if not sections:
            return "No active summaries found."
        return "\n".join(sections)
