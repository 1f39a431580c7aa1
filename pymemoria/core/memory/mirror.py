"""
Memory Mirror - Optional online copy of the local memory store.

This module defines the interface the memory store uses to mirror writes
and widen searches, plus a DuckDB-backed implementation that can point at
a remote (MotherDuck) or secondary database.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pymemoria.core.memory.similarity import count_term_matches
from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository
from pymemoria.data.schemas.models import Memory, StructuredMemoryQuery
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryMirror(ABC):
    """
    Abstract base class for online memory mirrors.

    The memory store treats every call as best effort: failures are
    logged and never break the local operation.
    """

    @abstractmethod
    def add(self, memory: Memory) -> None:
        """
        Mirror a newly stored memory.

        Args:
            memory: The memory as stored locally
        """
        pass

    @abstractmethod
    def search(self, query: StructuredMemoryQuery) -> List[Memory]:
        """
        Search the mirror.

        Args:
            query: Structured keyword query

        Returns:
            Matching memories (unranked)
        """
        pass

    @abstractmethod
    def delete(self, memory_id: str) -> None:
        """
        Remove a memory from the mirror.

        Args:
            memory_id: ID of the memory to remove
        """
        pass


class DuckDBMemoryMirror(MemoryMirror):
    """
    Mirror backed by a second DuckDB database (e.g. ``md:`` MotherDuck URI).
    """

    def __init__(self, db_path: str, repository: Optional[DuckDBMemoryRepository] = None):
        """
        Initialize the mirror.

        Args:
            db_path: DuckDB path or MotherDuck URI of the mirror database
            repository: Pre-built repository (overrides db_path)
        """
        self._repository = repository or DuckDBMemoryRepository(db_path=db_path, read_only=False)
        logger.info(f"Memory mirror initialized: {db_path}")

    def add(self, memory: Memory) -> None:
        if self._repository.get_memory(memory.id) is None:
            self._repository.insert_memory(memory)

    def search(self, query: StructuredMemoryQuery) -> List[Memory]:
        terms = [*query.primary_keywords, *query.context_keywords]
        results = []
        for category in query.categories:
            for memory in self._repository.list_by_category(category):
                text = memory.text()
                if any(count_term_matches(text, term) for term in terms):
                    results.append(memory)
        return results

    def delete(self, memory_id: str) -> None:
        self._repository.delete_memory(memory_id)

    def close(self) -> None:
        self._repository.close()
