"""
Conflict Resolver - Ranking and conflict resolution for memory entries.

Orders candidate entries by priority and picks (or builds) the single
entry that wins a conflict under a given strategy.
"""

from typing import Iterable, List, Sequence

from pymemoria.core.exceptions import InvalidMemoryError
from pymemoria.core.memory.scoring import ScoringEngine
from pymemoria.data.schemas.models import ConflictStrategy, Memory, ScoredEntry
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)


class ConflictResolver:
    """
    Ranks scored entries and resolves conflicts between them.
    """

    def __init__(self, scoring: ScoringEngine):
        """
        Initialize the resolver.

        Args:
            scoring: Scoring engine providing scores and the priority threshold
        """
        self._scoring = scoring

    def to_entries(self, memories: Iterable[Memory]) -> List[ScoredEntry]:
        """
        Score a batch of memories, skipping any that cannot be scored.

        Args:
            memories: Memories to convert

        Returns:
            Scored entries in input order
        """
        entries = []
        for memory in memories:
            try:
                entries.append(self._scoring.to_entry(memory))
            except InvalidMemoryError as e:
                logger.warning(f"Failed to convert memory to entry: {getattr(memory, 'id', None)}: {e}")
        return entries

    def _validate(self, entries: Sequence[ScoredEntry], operation: str) -> None:
        if not all(isinstance(entry, ScoredEntry) for entry in entries):
            raise InvalidMemoryError(f"Invalid memory entries provided for {operation}")

    def sort_by_priority(self, entries: Sequence[ScoredEntry]) -> List[ScoredEntry]:
        """
        Sort entries by priority score, highest first.

        Ties keep their input order.
        """
        self._validate(entries, "sorting")
        return sorted(entries, key=lambda entry: entry.priority_score, reverse=True)

    def filter_high_priority(self, entries: Sequence[ScoredEntry]) -> List[ScoredEntry]:
        """Keep entries whose priority clears the current threshold."""
        self._validate(entries, "filtering")
        threshold = self._scoring.priority_threshold
        return [entry for entry in entries if entry.priority_score >= threshold]

    def resolve_conflict(
        self,
        entries: Sequence[ScoredEntry],
        strategy: ConflictStrategy = ConflictStrategy.HIGHEST_RELEVANCE
    ) -> ScoredEntry:
        """
        Resolve a set of conflicting entries into one.

        Args:
            entries: Candidate entries (at least one)
            strategy: How to pick or build the winner

        Returns:
            The winning (or merged) entry

        Raises:
            InvalidMemoryError: If entries is empty or malformed
        """
        if not entries:
            raise InvalidMemoryError("No memory entries provided for conflict resolution")

        if len(entries) == 1:
            return entries[0]

        self._validate(entries, "conflict resolution")

        if strategy == ConflictStrategy.HIGHEST_RELEVANCE:
            return self._resolve_by_relevance(entries)
        elif strategy == ConflictStrategy.MOST_RECENT:
            return self._resolve_by_recency(entries)
        elif strategy == ConflictStrategy.MERGE:
            return self._merge_entries(entries)

        raise InvalidMemoryError(f"Unknown conflict resolution strategy: {strategy}")

    def _resolve_by_relevance(self, entries: Sequence[ScoredEntry]) -> ScoredEntry:
        return self.sort_by_priority(entries)[0]

    def _resolve_by_recency(self, entries: Sequence[ScoredEntry]) -> ScoredEntry:
        return max(entries, key=lambda entry: entry.timestamp)

    def _merge_entries(self, entries: Sequence[ScoredEntry]) -> ScoredEntry:
        ranked = self.sort_by_priority(entries)
        base = ranked[0]
        now = self._scoring.now()

        metadata = {}
        for entry in ranked:
            metadata.update(entry.metadata)
        metadata["category"] = base.category
        metadata["timestamp"] = now.isoformat()

        return base.model_copy(update={
            "metadata": metadata,
            "importance": max(e.importance or 0.0 for e in entries),
            "relevance_score": max(e.relevance_score or 0.0 for e in entries),
            "usage_count": sum(e.usage_count or 0 for e in entries),
            "timestamp": now,
            "decay_score": max(e.decay_score for e in entries),
            "priority_score": max(e.priority_score for e in entries),
        })
