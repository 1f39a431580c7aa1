"""
Memory Context - Assembles memory context for agent prompts.
"""

from typing import Iterable, Optional

from pymemoria.core.memory.consolidation import SummaryPipeline
from pymemoria.core.memory.store import MemoryStore, format_memory_results
from pymemoria.data.schemas.models import MemoryCategories, StructuredMemoryQuery
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryContextBuilder:
    """
    Combines the active summaries with searched memories.

    Only the two read surfaces of the engine are used: the active
    summaries block and the ranked memory search.
    """

    def __init__(self, store: MemoryStore, pipeline: SummaryPipeline):
        self._store = store
        self._pipeline = pipeline

    def build(self, query: StructuredMemoryQuery, usernames: Optional[Iterable[str]] = None) -> str:
        """
        Build the memory context for a prompt.

        Args:
            query: Memory query
            usernames: Users in the conversation; their categories are
                added to the query

        Returns:
            Active summaries block followed by the matching memories
        """
        categories = list(query.categories)
        for username in usernames or ():
            category = MemoryCategories.user(username)
            if category not in categories:
                categories.append(category)

        memories = self._store.search(query.model_copy(update={"categories": categories}))
        sections = [
            "# ACTIVE SUMMARIES",
            self._pipeline.get_active_summaries(),
            "# RELEVANT MEMORIES",
            format_memory_results(memories) or "No relevant memories found.",
        ]
        logger.debug(f"Built memory context with {len(memories)} memories")
        return "\n".join(sections)
