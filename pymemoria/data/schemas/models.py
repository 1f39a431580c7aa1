"""
Pydantic Models for PyMemoria.

This module defines the core data models used throughout the memory engine:
- Memory: A durable record of something the agent learned or produced
- ScoredEntry: A transient, scored view of a Memory used for ranking
- Summary: A tier-tagged condensed text unit
- StructuredMemoryQuery: A keyword query against the memory store
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from pymemoria.utils.converters import utcnow


class SummaryTier(str, Enum):
    """Position of a summary in the consolidation hierarchy."""
    SHORT = "short"
    MID = "mid"
    LONG = "long"


class ConflictStrategy(str, Enum):
    """Strategies for resolving a set of conflicting memory entries."""
    HIGHEST_RELEVANCE = "highest_relevance"
    MOST_RECENT = "most_recent"
    MERGE = "merge"


class TimeRelevance(str, Enum):
    """Time window applied to memory searches."""
    RECENT = "recent"  # Created within the last 24 hours
    ALL = "all"


class MemoryCategories:
    """Well-known memory categories."""
    WORLD_KNOWLEDGE = "world_knowledge"
    CRYPTO_KNOWLEDGE = "crypto_ecosystem_knowledge"
    USER_SPECIFIC = "user_specific"
    MAIN_TWEETS = "main_tweets"
    IMAGE_PROMPTS = "image_prompts"
    SYSTEM = "system"

    @staticmethod
    def self_knowledge(agent_name: str) -> str:
        """Category holding what the agent knows about itself."""
        return f"{agent_name}_self"

    @staticmethod
    def user(user_id: str) -> str:
        """Per-user knowledge category."""
        return f"user_{user_id}"


class MessageTurn(BaseModel):
    """A single (speaker role, text) turn of memory content."""
    role: str = Field(..., description="Speaker role, e.g. 'user' or 'assistant'")
    content: str = Field(..., description="Turn text")


class Memory(BaseModel):
    """
    A durable record of something learned or produced.

    Content turns are kept in conversation order.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Unique identifier")
    content: List[MessageTurn] = Field(..., description="Ordered conversation turns")
    category: str = Field(..., description="Partition key")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    importance: float = Field(0.5, description="Importance (0-1)")
    relevance_score: float = Field(0.5, description="Relevance (0-1, or raw search score)")
    usage_count: int = Field(0, description="Times the memory was used")
    agent_id: str = Field("system", description="Agent that recorded the memory")
    owner_id: str = Field("system", description="Owner partition (user or category)")
    created_at: datetime = Field(default_factory=utcnow, description="Creation time (UTC)")
    updated_at: datetime = Field(default_factory=utcnow, description="Last mutation time (UTC)")
    infer: bool = Field(True, description="Whether the content may be paraphrased downstream")

    def text(self) -> str:
        """Concatenate the turn texts in order."""
        return " ".join(turn.content for turn in self.content)


class ScoredEntry(BaseModel):
    """
    A Memory plus its computed decay and priority scores.

    Never persisted; always rebuilt from the current Memory and scoring
    configuration.
    """
    id: str
    content: List[MessageTurn]
    category: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime
    importance: Optional[float] = 0.5
    relevance_score: Optional[float] = 0.5
    usage_count: Optional[float] = 0
    decay_score: float = 0.0
    priority_score: float = 0.0

    @classmethod
    def from_memory(
        cls,
        memory: Memory,
        relevance_score: Optional[float] = None
    ) -> "ScoredEntry":
        """Build an unscored entry view of a memory."""
        metadata = dict(memory.metadata)
        metadata.setdefault("category", memory.category)
        metadata.setdefault("timestamp", memory.created_at.isoformat())
        return cls(
            id=memory.id,
            content=list(memory.content),
            category=memory.category,
            metadata=metadata,
            timestamp=memory.created_at,
            importance=memory.importance,
            relevance_score=memory.relevance_score if relevance_score is None else relevance_score,
            usage_count=memory.usage_count,
        )


class Summary(BaseModel):
    """A condensed summary belonging to one consolidation tier."""
    id: int = Field(..., description="Storage-assigned identifier")
    tier: SummaryTier = Field(..., description="Consolidation tier")
    text: str = Field(..., description="Summary text")
    processed: bool = Field(False, description="Folded into the next tier")
    session_id: Optional[str] = Field(None, description="Session that produced it (None for long)")
    created_at: datetime = Field(default_factory=utcnow, description="Creation time (UTC)")


class ActiveSummaries(BaseModel):
    """Unprocessed summaries across all tiers, oldest first within a tier."""
    long: Optional[Summary] = None
    mid: List[Summary] = Field(default_factory=list)
    short: List[Summary] = Field(default_factory=list)


class StructuredMemoryQuery(BaseModel):
    """A weighted keyword query against one or more memory categories."""
    primary_keywords: List[str] = Field(default_factory=list, description="Weighted 1.5")
    context_keywords: List[str] = Field(default_factory=list, description="Weighted 1.0")
    time_relevance: TimeRelevance = Field(TimeRelevance.ALL, description="recent = last 24h")
    categories: List[str] = Field(..., description="Categories to search")
    limit: int = Field(10, description="Maximum number of results")


class UserLearnings(BaseModel):
    """Learnings about a single user extracted from a session."""
    user_id: str
    learnings: List[str] = Field(default_factory=list)


class SessionLearnings(BaseModel):
    """Everything extracted from one activity session."""
    world_knowledge: List[str] = Field(default_factory=list)
    crypto_ecosystem_knowledge: List[str] = Field(default_factory=list)
    self_knowledge: List[str] = Field(default_factory=list)
    user_specific: List[UserLearnings] = Field(default_factory=list)
    summary: Optional[str] = None
