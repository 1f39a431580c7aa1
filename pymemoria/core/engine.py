"""
Memory Engine - Wires the PyMemoria components together.

Builds the repository, scoring engine, resolver, memory store, optional
mirror, condenser and summary pipeline from a MemoriaConfig. Every
component can be injected instead, which is how the tests run the engine
against an in-memory database and a stub condenser.
"""

from datetime import datetime
from typing import Callable, Optional

from pymemoria.config import MemoriaConfig, get_config
from pymemoria.core.agents.llm_controller import LLMController
from pymemoria.core.agents.llm_provider import LangChainOpenRouterModel
from pymemoria.core.agents.summarizer import SummaryCondenser
from pymemoria.core.memory.consolidation import Condenser, SummaryPipeline
from pymemoria.core.memory.mirror import DuckDBMemoryMirror, MemoryMirror
from pymemoria.core.memory.resolver import ConflictResolver
from pymemoria.core.memory.scoring import CleanupSchedule, ScoringEngine
from pymemoria.core.memory.store import MemoryStore
from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository
from pymemoria.data.schemas.models import SessionLearnings
from pymemoria.pipelines.context import MemoryContextBuilder
from pymemoria.pipelines.learnings import LearningRecorder
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)


class MemoryEngine:
    """
    The assembled memory engine.

    Attributes:
        config: Configuration the engine was built from
        repository: DuckDB storage
        scoring: Scoring engine
        resolver: Conflict resolver
        store: Memory store
        pipeline: Summary consolidation pipeline
        learnings: Session learning recorder
        context: Prompt context builder
    """

    def __init__(
        self,
        config: Optional[MemoriaConfig] = None,
        repository: Optional[DuckDBMemoryRepository] = None,
        condenser: Optional[Condenser] = None,
        mirror: Optional[MemoryMirror] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the engine.

        Args:
            config: Configuration (defaults to the global config)
            repository: Pre-built repository (defaults to config.duckdb)
            condenser: Condensation capability (defaults to the LLM condenser)
            mirror: Online mirror (defaults to config.mirror when enabled)
            clock: Time source for scoring and timestamps
        """
        self.config = config or get_config()

        if repository is None:
            self.config.ensure_directories()
            repository = DuckDBMemoryRepository(
                db_path=self.config.duckdb.path,
                read_only=self.config.duckdb.read_only
            )
        self.repository = repository

        if mirror is None and self.config.mirror.enabled and self.config.mirror.path:
            try:
                mirror = DuckDBMemoryMirror(self.config.mirror.path)
            except Exception as e:
                logger.warning(f"Online memory mirror unavailable, continuing without it: {e}")
                mirror = None
        self.mirror = mirror

        self.scoring = ScoringEngine(self.config.scoring, clock=clock)
        self.resolver = ConflictResolver(self.scoring)
        self.store = MemoryStore(
            self.repository,
            self.scoring,
            resolver=self.resolver,
            mirror=self.mirror,
            agent_name=self.config.agent.name
        )

        if condenser is None:
            controller = LLMController(
                LangChainOpenRouterModel(self.config.llm, self.config.langfuse),
                max_retries=self.config.llm.max_retries
            )
            condenser = SummaryCondenser(
                controller,
                agent_name=self.config.agent.name,
                current_summaries=lambda: self.pipeline.get_active_summaries()
            )
        self.pipeline = SummaryPipeline(self.repository, condenser)

        self.learnings = LearningRecorder(self.store, self.repository, self.pipeline)
        self.context = MemoryContextBuilder(self.store, self.pipeline)

        self._cleanup: Optional[CleanupSchedule] = None
        logger.info("Memory engine initialized")

    @property
    def running(self) -> bool:
        return self._cleanup is not None and self._cleanup.running

    def start(self) -> None:
        """Start the periodic memory cleanup."""
        if self.running:
            logger.warning("Memory engine already started")
            return
        self._cleanup = self.store.start_cleanup_schedule()
        logger.info("Memory engine started")

    def after_session(self, learnings: SessionLearnings, session_id: str) -> None:
        """Record a finished activity session and consolidate summaries."""
        self.learnings.record(learnings, session_id)

    def shutdown(self) -> None:
        """Stop the cleanup schedule and close storage."""
        if self._cleanup:
            self._cleanup.stop()
            self._cleanup = None

        if isinstance(self.mirror, DuckDBMemoryMirror):
            self.mirror.close()
        self.repository.close()
        logger.info("Memory engine shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
