"""
Data Schemas for PyMemoria.

This module exports the core Pydantic models and enums used throughout
the memory engine.
"""

from pymemoria.data.schemas.models import (
    # Enums
    SummaryTier,
    ConflictStrategy,
    TimeRelevance,
    MemoryCategories,

    # Models
    MessageTurn,
    Memory,
    ScoredEntry,
    Summary,
    ActiveSummaries,
    StructuredMemoryQuery,
    UserLearnings,
    SessionLearnings,
)

__all__ = [
    # Enums
    'SummaryTier',
    'ConflictStrategy',
    'TimeRelevance',
    'MemoryCategories',

    # Models
    'MessageTurn',
    'Memory',
    'ScoredEntry',
    'Summary',
    'ActiveSummaries',
    'StructuredMemoryQuery',
    'UserLearnings',
    'SessionLearnings',
]
