"""Shared fixtures and configuration for PyMemoria tests."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generator, List, Tuple

import pytest

from pymemoria.config import MemoriaConfig, MirrorConfig, ScoringConfig
from pymemoria.core.memory.consolidation import SummaryPipeline
from pymemoria.core.memory.mirror import MemoryMirror
from pymemoria.core.memory.resolver import ConflictResolver
from pymemoria.core.memory.scoring import ScoringEngine
from pymemoria.core.memory.store import MemoryStore
from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository
from pymemoria.data.schemas.models import Memory, MessageTurn, ScoredEntry, StructuredMemoryQuery

START_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


class StubCondenser:
    """Condenser returning ``COND(t1,t2,...)`` and recording its calls."""

    def __init__(self):
        self.calls: List[Tuple[List[str], str]] = []

    def __call__(self, texts: List[str], framing: str) -> str:
        self.calls.append((list(texts), framing))
        return "COND(" + ",".join(texts) + ")"


class FakeMirror(MemoryMirror):
    """In-process mirror keyed by memory id."""

    def __init__(self):
        self.memories: Dict[str, Memory] = {}

    def add(self, memory: Memory) -> None:
        self.memories[memory.id] = memory

    def search(self, query: StructuredMemoryQuery) -> List[Memory]:
        terms = [t.lower() for t in [*query.primary_keywords, *query.context_keywords]]
        return [
            m for m in self.memories.values()
            if m.category in query.categories and any(t in m.text().lower() for t in terms)
        ]

    def delete(self, memory_id: str) -> None:
        self.memories.pop(memory_id, None)


class FailingMirror(MemoryMirror):
    """Mirror whose every operation fails."""

    def add(self, memory: Memory) -> None:
        raise ConnectionError("mirror offline")

    def search(self, query: StructuredMemoryQuery) -> List[Memory]:
        raise ConnectionError("mirror offline")

    def delete(self, memory_id: str) -> None:
        raise ConnectionError("mirror offline")


def turns(*texts: str) -> List[MessageTurn]:
    """Build user turns from texts."""
    return [MessageTurn(role="user", content=text) for text in texts]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scoring_config() -> ScoringConfig:
    """Scoring configuration with the default starting values."""
    return ScoringConfig(
        decay_rate=0.1,
        priority_threshold=0.5,
        cleanup_interval_ms=24 * 60 * 60 * 1000
    )


@pytest.fixture
def scoring(scoring_config: ScoringConfig, clock: FakeClock) -> ScoringEngine:
    return ScoringEngine(scoring_config, clock=clock)


@pytest.fixture
def resolver(scoring: ScoringEngine) -> ConflictResolver:
    return ConflictResolver(scoring)


@pytest.fixture
def repository() -> Generator[DuckDBMemoryRepository, None, None]:
    """In-memory DuckDB repository."""
    repo = DuckDBMemoryRepository(db_path=":memory:", read_only=False)
    yield repo
    repo.close()


@pytest.fixture
def store(repository, scoring, resolver) -> MemoryStore:
    return MemoryStore(repository, scoring, resolver=resolver, agent_name="noot")


@pytest.fixture
def condenser() -> StubCondenser:
    return StubCondenser()


@pytest.fixture
def pipeline(repository, condenser) -> SummaryPipeline:
    return SummaryPipeline(repository, condenser)


@pytest.fixture
def fake_mirror() -> FakeMirror:
    return FakeMirror()


@pytest.fixture
def failing_mirror() -> FailingMirror:
    return FailingMirror()


@pytest.fixture
def test_config(scoring_config: ScoringConfig) -> MemoriaConfig:
    """Configuration without an online mirror."""
    return MemoriaConfig(
        mirror=MirrorConfig(path=None, enabled=False),
        scoring=scoring_config
    )


@pytest.fixture
def make_entry(clock: FakeClock) -> Callable[..., ScoredEntry]:
    """Factory for unscored entries created at the current fake time."""
    counter = {"n": 0}

    def _make(text: str = "some memory", **overrides) -> ScoredEntry:
        counter["n"] += 1
        fields = {
            "id": f"entry-{counter['n']}",
            "content": turns(text),
            "category": "world_knowledge",
            "timestamp": clock(),
        }
        fields.update(overrides)
        return ScoredEntry(**fields)

    return _make
