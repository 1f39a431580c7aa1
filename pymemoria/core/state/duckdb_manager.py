"""
DuckDB Memory Repository - Persistent storage for PyMemoria.

This module provides DuckDB-based storage and querying for memories,
tiered summaries and raw session learnings.
"""

import json
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

import duckdb

from pymemoria.config import get_config
from pymemoria.data.schemas.models import Memory, MessageTurn, Summary, SummaryTier
from pymemoria.utils.converters import ensure_utc, load_json_column, to_db_timestamp, utcnow
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)

_MEMORY_COLUMNS = (
    "id, category, content, metadata, importance, relevance_score, usage_count, "
    "agent_id, owner_id, infer, created_at, updated_at"
)
_SUMMARY_COLUMNS = "id, summary_type, summary, processed, session_id, created_at"


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class DuckDBMemoryRepository:
    """
    DuckDB-backed repository for memories, summaries and learnings.

    A single connection is shared behind a lock, since the cleanup
    schedule reads and deletes from a background thread.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        read_only: Optional[bool] = None
    ):
        """
        Initialize the DuckDB memory repository.

        Args:
            db_path: Path to DuckDB database file (defaults to config; ":memory:" allowed)
            read_only: Open database in read-only mode
        """
        config = get_config()
        self._db_path = db_path or config.duckdb.path
        self._read_only = config.duckdb.read_only if read_only is None else read_only
        self._lock = threading.RLock()

        # Ensure directory exists
        if self._db_path != ":memory:" and not self._db_path.startswith("md:"):
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        # Connect to DuckDB
        self._conn = duckdb.connect(self._db_path, read_only=self._read_only)

        # Initialize schema
        if not self._read_only:
            self._init_schema()

        logger.info(f"DuckDB memory repository initialized: {self._db_path}")

    def _init_schema(self) -> None:
        """Create tables and sequences if they do not exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                id VARCHAR PRIMARY KEY,
                category VARCHAR NOT NULL,
                content JSON NOT NULL,
                metadata JSON DEFAULT '{}',
                importance DOUBLE DEFAULT 0.5,
                relevance_score DOUBLE DEFAULT 0.5,
                usage_count INTEGER DEFAULT 0,
                agent_id VARCHAR NOT NULL,
                owner_id VARCHAR NOT NULL,
                infer BOOLEAN DEFAULT TRUE,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """)

        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS memory_summaries_id_seq START 1")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS memory_summaries (
                id INTEGER PRIMARY KEY DEFAULT nextval('memory_summaries_id_seq'),
                summary_type VARCHAR NOT NULL,
                summary VARCHAR NOT NULL,
                processed BOOLEAN NOT NULL DEFAULT FALSE,
                session_id VARCHAR,
                created_at TIMESTAMP NOT NULL,
                last_updated TIMESTAMP NOT NULL
            )
        """)

        self._conn.execute("CREATE SEQUENCE IF NOT EXISTS learnings_id_seq START 1")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS learnings (
                id INTEGER PRIMARY KEY DEFAULT nextval('learnings_id_seq'),
                learning_type VARCHAR NOT NULL,
                content VARCHAR NOT NULL,
                session_id VARCHAR,
                user_id VARCHAR,
                created_at TIMESTAMP NOT NULL
            )
        """)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Run a block atomically; roll back and re-raise on failure."""
        with self._lock:
            self._conn.begin()
            try:
                yield
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()

    # =========================================================================
    # MEMORY OPERATIONS
    # =========================================================================

    def _row_to_memory(self, row: Sequence[Any]) -> Memory:
        (memory_id, category, content, metadata, importance, relevance_score,
         usage_count, agent_id, owner_id, infer, created_at, updated_at) = row
        return Memory(
            id=memory_id,
            content=[MessageTurn(**turn) for turn in load_json_column(content, [])],
            category=category,
            metadata=load_json_column(metadata, {}),
            importance=importance if importance is not None else 0.5,
            relevance_score=relevance_score if relevance_score is not None else 0.5,
            usage_count=usage_count or 0,
            agent_id=agent_id,
            owner_id=owner_id,
            infer=bool(infer),
            created_at=ensure_utc(created_at),
            updated_at=ensure_utc(updated_at),
        )

    def _insert_memory(self, memory: Memory) -> None:
        self._conn.execute(f"""
            INSERT INTO memories ({_MEMORY_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [
            memory.id,
            memory.category,
            json.dumps([turn.model_dump() for turn in memory.content]),
            json.dumps(memory.metadata, default=str),
            memory.importance,
            memory.relevance_score,
            memory.usage_count,
            memory.agent_id,
            memory.owner_id,
            memory.infer,
            to_db_timestamp(memory.created_at),
            to_db_timestamp(memory.updated_at),
        ])

    def insert_memory(self, memory: Memory) -> None:
        """Persist a new memory."""
        with self._lock:
            self._insert_memory(memory)

    def replace_memories(self, memory: Memory, remove_ids: Sequence[str]) -> None:
        """
        Persist a memory and delete the memories it supersedes, atomically.

        Args:
            memory: New memory to insert
            remove_ids: IDs of memories to delete in the same transaction
        """
        with self._transaction():
            if remove_ids:
                self._conn.execute(
                    f"DELETE FROM memories WHERE id IN ({_placeholders(len(remove_ids))})",
                    list(remove_ids)
                )
            self._insert_memory(memory)

    def get_memory(self, memory_id: str) -> Optional[Memory]:
        """Get a memory by ID, or None."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE id = ?",
                [memory_id]
            ).fetchone()
        return self._row_to_memory(row) if row else None

    def list_by_category(self, category: str) -> List[Memory]:
        """All memories in a category, oldest first."""
        with self._lock:
            rows = self._conn.execute(f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                WHERE category = ?
                ORDER BY created_at ASC, id ASC
            """, [category]).fetchall()
        return [self._row_to_memory(row) for row in rows]

    def list_all(self) -> List[Memory]:
        """Every stored memory, oldest first."""
        with self._lock:
            rows = self._conn.execute(f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                ORDER BY created_at ASC, id ASC
            """).fetchall()
        return [self._row_to_memory(row) for row in rows]

    def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory; returns False if it did not exist."""
        return self.delete_memories([memory_id]) > 0

    def delete_memories(self, memory_ids: Sequence[str]) -> int:
        """
        Delete memories by ID.

        Returns:
            Number of memories deleted
        """
        if not memory_ids:
            return 0
        with self._lock:
            rows = self._conn.execute(
                f"DELETE FROM memories WHERE id IN ({_placeholders(len(memory_ids))}) RETURNING id",
                list(memory_ids)
            ).fetchall()
        return len(rows)

    def record_usage(self, memory_id: str, updated_at: Optional[datetime] = None) -> Optional[Memory]:
        """
        Increment a memory's usage count.

        Returns:
            The updated memory, or None if it does not exist
        """
        with self._lock:
            self._conn.execute("""
                UPDATE memories
                SET usage_count = usage_count + 1, updated_at = ?
                WHERE id = ?
            """, [to_db_timestamp(updated_at or utcnow()), memory_id])
            return self.get_memory(memory_id)

    def count_memories(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM memories").fetchone()[0]

    # =========================================================================
    # SUMMARY OPERATIONS
    # =========================================================================

    def _row_to_summary(self, row: Sequence[Any]) -> Summary:
        summary_id, summary_type, text, processed, session_id, created_at = row
        return Summary(
            id=summary_id,
            tier=SummaryTier(summary_type),
            text=text,
            processed=bool(processed),
            session_id=session_id,
            created_at=ensure_utc(created_at),
        )

    def _insert_summary(
        self,
        tier: SummaryTier,
        text: str,
        session_id: Optional[str],
        created_at: Optional[datetime]
    ) -> Summary:
        created = to_db_timestamp(created_at or utcnow())
        row = self._conn.execute(f"""
            INSERT INTO memory_summaries (summary_type, summary, processed, session_id, created_at, last_updated)
            VALUES (?, ?, FALSE, ?, ?, ?)
            RETURNING {_SUMMARY_COLUMNS}
        """, [tier.value, text, session_id, created, created]).fetchone()
        return self._row_to_summary(row)

    def _mark_processed(self, summary_ids: Sequence[int]) -> None:
        if not summary_ids:
            return
        self._conn.execute(f"""
            UPDATE memory_summaries
            SET processed = TRUE, last_updated = ?
            WHERE id IN ({_placeholders(len(summary_ids))})
        """, [to_db_timestamp(utcnow()), *summary_ids])

    def save_summary(
        self,
        tier: SummaryTier,
        text: str,
        session_id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> Summary:
        """
        Save a new unprocessed summary.

        Args:
            tier: Summary tier
            text: Summary text
            session_id: Producing session (None for long-term summaries)
            created_at: Creation time (defaults to now)

        Returns:
            The stored summary
        """
        with self._lock:
            summary = self._insert_summary(tier, text, session_id, created_at)
        logger.info(f"{tier.value}-term summary saved: {summary.id}")
        return summary

    def commit_consolidation(
        self,
        tier: SummaryTier,
        text: str,
        session_id: Optional[str],
        processed_ids: Sequence[int]
    ) -> Summary:
        """
        Store a condensed summary and mark its sources processed, atomically.

        Args:
            tier: Tier of the new summary
            text: Condensed text
            session_id: Producing session (None for long-term summaries)
            processed_ids: Summaries consumed by this condensation

        Returns:
            The new summary
        """
        with self._transaction():
            self._mark_processed(processed_ids)
            summary = self._insert_summary(tier, text, session_id, None)
        logger.info(
            f"{tier.value}-term summary {summary.id} saved; "
            f"marked {len(processed_ids)} summaries processed"
        )
        return summary

    def get_unprocessed_summaries(
        self,
        tier: SummaryTier,
        limit: Optional[int] = None,
        ascending: bool = True
    ) -> List[Summary]:
        """
        Get unprocessed summaries of a tier.

        Args:
            tier: Summary tier
            limit: Maximum number to return (None = all)
            ascending: Oldest first if True, newest first otherwise

        Returns:
            Matching summaries
        """
        direction = "ASC" if ascending else "DESC"
        query = f"""
            SELECT {_SUMMARY_COLUMNS} FROM memory_summaries
            WHERE summary_type = ? AND processed = FALSE
            ORDER BY created_at {direction}, id {direction}
        """
        params: List[Any] = [tier.value]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_summary(row) for row in rows]

    def list_summaries(self, tier: Optional[SummaryTier] = None) -> List[Summary]:
        """All summaries (processed or not), oldest first."""
        query = f"SELECT {_SUMMARY_COLUMNS} FROM memory_summaries"
        params: List[Any] = []
        if tier is not None:
            query += " WHERE summary_type = ?"
            params.append(tier.value)
        query += " ORDER BY created_at ASC, id ASC"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [self._row_to_summary(row) for row in rows]

    # =========================================================================
    # LEARNING OPERATIONS
    # =========================================================================

    def save_learning(
        self,
        learning_type: str,
        content: str,
        session_id: Optional[str],
        user_id: Optional[str] = None
    ) -> int:
        """
        Save a raw learning extracted from a session.

        Returns:
            The learning's ID
        """
        with self._lock:
            row = self._conn.execute("""
                INSERT INTO learnings (learning_type, content, session_id, user_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                RETURNING id
            """, [learning_type, content, session_id, user_id, to_db_timestamp(utcnow())]).fetchone()
        return row[0]

    def get_learnings_by_type(
        self,
        learning_type: str,
        session_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Retrieve learnings of a type, optionally limited to one session."""
        query = """
            SELECT id, learning_type, content, session_id, user_id, created_at
            FROM learnings
            WHERE learning_type = ?
        """
        params: List[Any] = [learning_type]
        if session_id:
            query += " AND session_id = ?"
            params.append(session_id)
        query += " ORDER BY id"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()

        return [
            {
                'id': r[0],
                'learning_type': r[1],
                'content': r[2],
                'session_id': r[3],
                'user_id': r[4],
                'created_at': ensure_utc(r[5])
            }
            for r in rows
        ]

    # =========================================================================
    # CLEANUP
    # =========================================================================

    def clear(self) -> None:
        """Delete every memory, summary and learning."""
        with self._lock:
            self._conn.execute("DELETE FROM memories")
            self._conn.execute("DELETE FROM memory_summaries")
            self._conn.execute("DELETE FROM learnings")
        logger.info("Memory repository cleared")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
        logger.info("DuckDB connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
