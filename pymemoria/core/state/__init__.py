"""
State module - Persistence for memories, summaries and learnings.
"""

from pymemoria.core.state.duckdb_manager import DuckDBMemoryRepository

__all__ = ["DuckDBMemoryRepository"]
