"""
Learning Recorder - Persists the learnings extracted from a session.

Each group of learnings becomes a memory in its category and each single
learning is logged to the learnings table. The session summary enters the
short tier and triggers a consolidation pass.
"""

from typing import Dict, List, Optional

from pymemoria.core.memory.consolidation import SummaryPipeline
from pymemoria.core.memory.store import MemoryStore
from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository
from pymemoria.data.schemas.models import Memory, MemoryCategories, MessageTurn, SessionLearnings
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)


def learnings_to_turns(learnings: List[str]) -> List[MessageTurn]:
    """One user turn per learning."""
    return [MessageTurn(role="user", content=learning) for learning in learnings]


class LearningRecorder:
    """
    Records session learnings into memory and the summary hierarchy.
    """

    def __init__(
        self,
        store: MemoryStore,
        repository: DuckDBMemoryRepository,
        pipeline: SummaryPipeline
    ):
        """
        Initialize the recorder.

        Args:
            store: Memory store receiving the learnings
            repository: Storage for the raw learning log
            pipeline: Summary pipeline receiving the session summary
        """
        self._store = store
        self._repository = repository
        self._pipeline = pipeline

    def _log_learnings(
        self,
        learning_type: str,
        learnings: List[str],
        session_id: Optional[str],
        user_id: Optional[str] = None
    ) -> None:
        for learning in learnings:
            self._repository.save_learning(learning_type, learning, session_id, user_id)

    def record(self, learnings: SessionLearnings, session_id: Optional[str] = None) -> Dict[str, Memory]:
        """
        Record everything a session taught the agent.

        Args:
            learnings: Extracted session learnings
            session_id: Session the learnings came from

        Returns:
            Stored memory per category (the surviving memory when a
            duplicate already existed)
        """
        stored: Dict[str, Memory] = {}
        self_category = MemoryCategories.self_knowledge(self._store.agent_name)

        groups = [
            (MemoryCategories.WORLD_KNOWLEDGE, learnings.world_knowledge),
            (MemoryCategories.CRYPTO_KNOWLEDGE, learnings.crypto_ecosystem_knowledge),
            (self_category, learnings.self_knowledge),
        ]

        try:
            for category, items in groups:
                if not items:
                    continue
                stored[category] = self._store.add(learnings_to_turns(items), category)
                self._log_learnings(category, items, session_id)
                logger.info(f"Added {len(items)} learnings to {category}")

            for user in learnings.user_specific:
                if not user.learnings:
                    continue
                memory = self._store.add_user_knowledge(learnings_to_turns(user.learnings), user.user_id)
                stored[memory.category] = memory
                self._log_learnings("user_specific", user.learnings, session_id, user.user_id)
                logger.info(f"Added memories for user: {user.user_id}")

            if learnings.summary:
                self._pipeline.save_short_summary(learnings.summary, session_id)
                logger.info("Triggering summary condensation process...")
                self._pipeline.consolidate(session_id)
        except Exception as e:
            logger.error(f"Error recording learnings for session {session_id}: {e}")
            raise

        return stored
