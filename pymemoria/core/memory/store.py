"""
Memory Store - Categorized memory storage with deduplication and search.

The store stamps and persists memories, refuses near-duplicates that lose
conflict resolution, answers weighted keyword searches ranked by priority,
and prunes low-priority memories on the scoring engine's schedule.
"""

from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pymemoria.config import get_config
from pymemoria.core.exceptions import InvalidMemoryError
from pymemoria.core.memory.mirror import MemoryMirror
from pymemoria.core.memory.resolver import ConflictResolver
from pymemoria.core.memory.scoring import CleanupSchedule, ScoringEngine
from pymemoria.core.memory.similarity import DuplicateDetector, count_term_matches
from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository
from pymemoria.data.schemas.models import (
    ConflictStrategy,
    Memory,
    MemoryCategories,
    MessageTurn,
    StructuredMemoryQuery,
    TimeRelevance,
)
from pymemoria.utils.converters import ensure_utc
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)

PRIMARY_KEYWORD_WEIGHT = 1.5
CONTEXT_KEYWORD_WEIGHT = 1.0
RECENT_WINDOW = timedelta(hours=24)

ContentInput = Sequence[Union[MessageTurn, Mapping[str, Any]]]


def _metadata_number(metadata: Mapping[str, Any], key: str, default: float) -> float:
    value = metadata.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return float(value)


def format_memory_results(memories: Sequence[Memory], category: Optional[str] = None) -> str:
    """
    Format memories as a markdown bullet list for prompt injection.

    Args:
        memories: Memories to format
        category: Optional header to put above the list

    Returns:
        Formatted text, or an empty string when there is nothing to show
    """
    if not memories:
        return ""

    lines = [f"\n## {category}" if category else ""]
    for memory in memories:
        lines.extend(f"- {turn.content}" for turn in memory.content)
    return "\n".join(lines) + "\n"


class MemoryStore:
    """
    Categorized persistent memory storage.

    Built explicitly and handed to its callers; holds no global state.
    """

    def __init__(
        self,
        repository: DuckDBMemoryRepository,
        scoring: ScoringEngine,
        resolver: Optional[ConflictResolver] = None,
        mirror: Optional[MemoryMirror] = None,
        agent_name: Optional[str] = None,
        duplicate_detector: Optional[DuplicateDetector] = None
    ):
        """
        Initialize the memory store.

        Args:
            repository: Persistent storage for memories
            scoring: Scoring engine used for ranking and retention
            resolver: Conflict resolver (built from scoring if omitted)
            mirror: Optional online mirror
            agent_name: Agent recorded as the author of new memories
            duplicate_detector: Near-duplicate detector (Jaccard > 0.8 by default)
        """
        self._repository = repository
        self._scoring = scoring
        self._resolver = resolver or ConflictResolver(scoring)
        self._mirror = mirror
        self._agent_name = agent_name or get_config().agent.name
        self._detector = duplicate_detector or DuplicateDetector()

        logger.info(
            f"Memory store initialized for agent {self._agent_name}"
            f"{' with online mirror' if mirror else ''}"
        )

    @property
    def agent_name(self) -> str:
        return self._agent_name

    # =========================================================================
    # WRITES
    # =========================================================================

    def _validate_content(self, content: ContentInput) -> List[MessageTurn]:
        if isinstance(content, (str, bytes)) or not isinstance(content, Sequence):
            raise InvalidMemoryError("Memory content must be a list of (role, content) turns")

        turns = []
        for turn in content:
            if isinstance(turn, MessageTurn):
                turns.append(turn)
            elif (
                isinstance(turn, Mapping)
                and isinstance(turn.get("role"), str)
                and isinstance(turn.get("content"), str)
            ):
                turns.append(MessageTurn(role=turn["role"], content=turn["content"]))
            else:
                raise InvalidMemoryError(f"Malformed memory turn: {turn!r}")
        return turns

    def add(
        self,
        content: ContentInput,
        category: str,
        metadata: Optional[Mapping[str, Any]] = None,
        infer: bool = True
    ) -> Memory:
        """
        Add a memory unless a near-duplicate in the same category outranks it.

        A new memory that wins conflict resolution replaces the duplicates
        it beat, so a category never holds both.

        Args:
            content: Ordered (role, content) turns
            category: Partition key
            metadata: Extra metadata; may carry importance, relevance_score,
                usage_count and user_id
            infer: False if downstream consumers must not reword the content

        Returns:
            The stored memory, or the existing memory that won the conflict
        """
        turns = self._validate_content(content)
        if not category or not isinstance(category, str):
            raise InvalidMemoryError("Memory category must be a non-empty string")

        metadata = dict(metadata or {})
        now = self._scoring.now()
        memory = Memory(
            content=turns,
            category=category,
            metadata={**metadata, "category": category, "timestamp": now.isoformat()},
            importance=_metadata_number(metadata, "importance", 0.5),
            relevance_score=_metadata_number(metadata, "relevance_score", 0.5),
            usage_count=int(_metadata_number(metadata, "usage_count", 0)),
            agent_id=self._agent_name,
            owner_id=str(metadata.get("user_id", category)),
            created_at=now,
            updated_at=now,
            infer=infer,
        )

        try:
            existing = self._repository.list_by_category(category)
            conflicts = self._detector.find_conflicts(existing, memory)

            if conflicts:
                entries = self._resolver.to_entries([*conflicts, memory])
                winner = self._resolver.resolve_conflict(entries, ConflictStrategy.HIGHEST_RELEVANCE)

                if winner.id != memory.id:
                    logger.info(
                        f"Discarded duplicate memory in category {category}; "
                        f"keeping existing memory {winner.id}"
                    )
                    return next(m for m in conflicts if m.id == winner.id)

                superseded = [m.id for m in conflicts]
                self._repository.replace_memories(memory, superseded)
                logger.info(f"Memory {memory.id} superseded {len(superseded)} duplicate(s) in {category}")
                for memory_id in superseded:
                    self._mirror_delete(memory_id)
            else:
                self._repository.insert_memory(memory)
        except InvalidMemoryError:
            raise
        except Exception as e:
            logger.error(f"Error adding memory to {category}: {e}")
            raise

        self._mirror_add(memory)
        logger.info(f"Memory added successfully: {memory.id} in category: {category}")
        return memory

    def add_world_knowledge(self, content: ContentInput) -> Memory:
        return self.add(content, MemoryCategories.WORLD_KNOWLEDGE)

    def add_crypto_knowledge(self, content: ContentInput) -> Memory:
        return self.add(content, MemoryCategories.CRYPTO_KNOWLEDGE)

    def add_self_knowledge(self, content: ContentInput) -> Memory:
        return self.add(content, MemoryCategories.self_knowledge(self._agent_name))

    def add_user_knowledge(self, content: ContentInput, user_id: str) -> Memory:
        return self.add(content, MemoryCategories.user(user_id), {"user_id": user_id})

    def add_main_tweet(self, content: ContentInput) -> Memory:
        """Store a produced tweet verbatim (infer disabled)."""
        return self.add(content, MemoryCategories.MAIN_TWEETS, infer=False)

    def add_image_prompt(self, content: ContentInput) -> Memory:
        return self.add(content, MemoryCategories.IMAGE_PROMPTS)

    def record_usage(self, memory_id: str) -> Optional[Memory]:
        """
        Note that a memory was used, reinforcing its priority.

        Returns:
            The updated memory, or None if it does not exist
        """
        try:
            return self._repository.record_usage(memory_id, self._scoring.now())
        except Exception as e:
            logger.error(f"Error recording usage of memory {memory_id}: {e}")
            raise

    def delete(self, memory_id: str) -> bool:
        """
        Delete a memory locally and, best effort, from the mirror.

        Returns:
            True if a local memory was deleted
        """
        try:
            deleted = self._repository.delete_memory(memory_id)
        except Exception as e:
            logger.error(f"Error deleting memory {memory_id}: {e}")
            raise

        self._mirror_delete(memory_id)
        if deleted:
            logger.info(f"Memory deleted: {memory_id}")
        return deleted

    # =========================================================================
    # READS
    # =========================================================================

    def get_by_category(self, category: str) -> List[Memory]:
        try:
            return self._repository.list_by_category(category)
        except Exception as e:
            logger.error(f"Error getting memories for category {category}: {e}")
            raise

    def get_by_id(self, memory_id: str) -> Optional[Memory]:
        try:
            return self._repository.get_memory(memory_id)
        except Exception as e:
            logger.error(f"Error getting memory {memory_id}: {e}")
            raise

    def get_all(self) -> List[Memory]:
        try:
            return self._repository.list_all()
        except Exception as e:
            logger.error(f"Error getting all memories: {e}")
            raise

    def _relevance(self, memory: Memory, weighted_terms: Sequence[Tuple[str, float]]) -> float:
        text = memory.text()
        return sum(count_term_matches(text, term) * weight for term, weight in weighted_terms)

    def search(self, query: Union[StructuredMemoryQuery, Mapping[str, Any]]) -> List[Memory]:
        """
        Search memories with weighted keywords, ranked by priority.

        Relevance is the weighted count of keyword occurrences (primary
        keywords 1.5, context keywords 1.0). Memories with no matches are
        dropped. For ranking, relevance is scaled to [0, 1] against the best
        match; the returned memories carry the raw relevance.

        Args:
            query: Structured query (or a mapping with the same fields)

        Returns:
            Up to query.limit memories, highest priority first
        """
        if not isinstance(query, StructuredMemoryQuery):
            query = StructuredMemoryQuery(**query)
        if not query.categories:
            raise InvalidMemoryError("Memory query must name at least one category")

        weighted_terms = (
            [(term, PRIMARY_KEYWORD_WEIGHT) for term in query.primary_keywords] +
            [(term, CONTEXT_KEYWORD_WEIGHT) for term in query.context_keywords]
        )
        cutoff = None
        if query.time_relevance == TimeRelevance.RECENT:
            cutoff = self._scoring.now() - RECENT_WINDOW

        candidates: Dict[str, Tuple[Memory, float]] = {}
        try:
            for category in query.categories:
                for memory in self._repository.list_by_category(category):
                    if memory.id in candidates:
                        continue
                    if cutoff and memory.created_at < cutoff:
                        continue
                    score = self._relevance(memory, weighted_terms)
                    if score > 0:
                        candidates[memory.id] = (memory, score)
        except Exception as e:
            logger.error(f"Error searching memories: {e}")
            raise

        categories = set(query.categories)
        for memory in self._mirror_search(query):
            if memory.id in candidates or memory.category not in categories:
                continue
            try:
                if cutoff and ensure_utc(memory.created_at) < cutoff:
                    continue
                score = self._relevance(memory, weighted_terms)
            except Exception as e:
                logger.warning(f"Skipping malformed mirror memory {memory.id}: {e}")
                continue
            if score > 0:
                candidates[memory.id] = (memory, score)

        if not candidates:
            logger.info("Found 0 memories matching query")
            return []

        best = max(score for _, score in candidates.values()) or 1.0
        entries = [
            self._scoring.to_entry(memory, relevance_score=score / best)
            for memory, score in candidates.values()
        ]
        ranked = self._resolver.sort_by_priority(entries)

        results = []
        for entry in ranked[:query.limit]:
            memory, score = candidates[entry.id]
            results.append(memory.model_copy(update={"relevance_score": score}))

        logger.info(f"Found {len(results)} memories matching query")
        return results

    # =========================================================================
    # CLEANUP
    # =========================================================================

    def _cleanup_pass(self) -> int:
        population = self._repository.list_all()
        entries = self._resolver.to_entries(population)
        retained = {entry.id for entry in self._scoring.filter_for_retention(entries)}
        doomed = [entry.id for entry in entries if entry.id not in retained]

        removed = self._repository.delete_memories(doomed)
        for memory_id in doomed:
            self._mirror_delete(memory_id)

        logger.info(f"Memory cleanup complete: removed {removed} of {len(population)} memories")
        return removed

    def run_cleanup(self) -> int:
        """
        Delete every memory the scoring engine decides not to retain.

        Failures are logged and leave all memories untouched.

        Returns:
            Number of memories removed (0 on failure)
        """
        try:
            return self._cleanup_pass()
        except Exception as e:
            logger.error(f"Error during memory cleanup: {e}")
            return 0

    def start_cleanup_schedule(self) -> CleanupSchedule:
        """Run cleanup on the scoring engine's interval until stopped."""
        return self._scoring.schedule_cleanup(self._cleanup_pass)

    # =========================================================================
    # MIRROR (best effort)
    # =========================================================================

    def _mirror_add(self, memory: Memory) -> None:
        if not self._mirror:
            return
        try:
            self._mirror.add(memory)
        except Exception as e:
            logger.warning(f"Failed to sync memory {memory.id} to online mirror: {e}")

    def _mirror_delete(self, memory_id: str) -> None:
        if not self._mirror:
            return
        try:
            self._mirror.delete(memory_id)
        except Exception as e:
            logger.warning(f"Failed to delete memory {memory_id} from online mirror: {e}")

    def _mirror_search(self, query: StructuredMemoryQuery) -> List[Memory]:
        if not self._mirror:
            return []
        try:
            return list(self._mirror.search(query))
        except Exception as e:
            logger.warning(f"Online memory search failed: {e}")
            return []
