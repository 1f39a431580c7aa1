"""
Memory module - Long-term memory of the agent.

This module contains:
- scoring: Decay and priority scoring, parameter adaptation, cleanup schedule
- resolver: Priority ranking and conflict resolution
- similarity: Lexical similarity and duplicate detection
- store: Categorized memory storage and keyword search
- mirror: Optional online copy of the memory store
- consolidation: Short/mid/long summary hierarchy
"""

from pymemoria.core.memory.scoring import (
    ScoringEngine,
    PopulationStats,
    CleanupSchedule
)
from pymemoria.core.memory.resolver import ConflictResolver
from pymemoria.core.memory.similarity import (
    DuplicateDetector,
    jaccard_similarity,
    count_term_matches
)
from pymemoria.core.memory.store import MemoryStore, format_memory_results
from pymemoria.core.memory.mirror import MemoryMirror, DuckDBMemoryMirror
from pymemoria.core.memory.consolidation import SummaryPipeline, TierRule, TIER_RULES

__all__ = [
    # Scoring
    "ScoringEngine",
    "PopulationStats",
    "CleanupSchedule",
    # Resolution
    "ConflictResolver",
    "DuplicateDetector",
    "jaccard_similarity",
    "count_term_matches",
    # Storage
    "MemoryStore",
    "format_memory_results",
    "MemoryMirror",
    "DuckDBMemoryMirror",
    # Consolidation
    "SummaryPipeline",
    "TierRule",
    "TIER_RULES",
]
