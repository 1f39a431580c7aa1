"""
PyMemoria - Main Entry Point

Command line access to the memory engine: run a consolidation pass,
prune memories, print the active summaries or search a category.

Usage:
    python -m pymemoria.main [--consolidate SESSION] [--cleanup] [--summaries]
                             [--search KEYWORD --category CAT]
"""

import argparse
from typing import List, Optional

from pymemoria.config import get_config
from pymemoria.core.engine import MemoryEngine
from pymemoria.core.memory.store import format_memory_results
from pymemoria.data.schemas.models import StructuredMemoryQuery, TimeRelevance
from pymemoria.utils.logger import get_logger, set_level

logger = get_logger("pymemoria.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PyMemoria - Memory and summary consolidation engine"
    )
    parser.add_argument(
        "--consolidate",
        metavar="SESSION",
        help="Run a summary consolidation pass for a session"
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Remove low-priority memories"
    )
    parser.add_argument(
        "--summaries",
        action="store_true",
        help="Print the active summaries"
    )
    parser.add_argument(
        "--search",
        metavar="KEYWORD",
        nargs="+",
        help="Search memories for one or more keywords"
    )
    parser.add_argument(
        "--category",
        action="append",
        help="Category to search (repeatable)"
    )
    parser.add_argument(
        "--recent",
        action="store_true",
        help="Only search memories from the last 24 hours"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Maximum number of search results"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        set_level("DEBUG")

    if args.search and not args.category:
        parser.error("--search requires at least one --category")

    if not (args.consolidate or args.cleanup or args.summaries or args.search):
        parser.print_help()
        return 0

    config = get_config()
    logger.info(f"Opening memory database at {config.duckdb.path}")

    with MemoryEngine(config) as engine:
        if args.consolidate:
            engine.pipeline.consolidate(args.consolidate)
            logger.info(f"Consolidation pass complete for session {args.consolidate}")

        if args.cleanup:
            removed = engine.store.run_cleanup()
            print(f"Removed {removed} memories")

        if args.summaries:
            print(engine.pipeline.get_active_summaries())

        if args.search:
            query = StructuredMemoryQuery(
                primary_keywords=args.search,
                time_relevance=TimeRelevance.RECENT if args.recent else TimeRelevance.ALL,
                categories=args.category,
                limit=args.limit
            )
            memories = engine.store.search(query)
            print(format_memory_results(memories, ", ".join(args.category)) or "No memories found.")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
