"""
Core module - Memory engine internals for PyMemoria.

This module contains:
- memory: Scoring, conflict resolution, storage and summary consolidation
- state: DuckDB persistence
- agents: LLM condensation layer
- engine: Wiring of the components above
"""
