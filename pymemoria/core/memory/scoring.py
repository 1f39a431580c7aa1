"""
Memory Scoring - Relevance decay, priority scoring and retention for PyMemoria.

The scoring engine turns memories into scored entries, decides which of
them are worth keeping, and periodically retunes its own decay rate and
retention threshold from population statistics.
"""

import math
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Sequence

from pymemoria.config import ScoringConfig, get_config
from pymemoria.core.exceptions import InvalidMemoryError
from pymemoria.data.schemas.models import Memory, ScoredEntry
from pymemoria.utils.converters import ensure_utc, utcnow
from pymemoria.utils.logger import get_logger

logger = get_logger(__name__)

DECAY_WEIGHT = 0.4
RELEVANCE_WEIGHT = 0.3
HIGH_IMPORTANCE_RELEVANCE_WEIGHT = 0.5
HIGH_IMPORTANCE_LEVEL = 0.7


def _number(value: Any, default: float) -> float:
    """Read a numeric field, falling back to default when missing or malformed."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return float(value)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class PopulationStats:
    """
    Running statistics of the memory population.

    Attributes:
        total_count: Number of memories seen at the last adjustment
        avg_importance: Average importance at the last adjustment
        avg_usage: Average usage count at the last adjustment
        last_adjustment: When parameters were last adjusted
    """
    total_count: int = 0
    avg_importance: float = 0.5
    avg_usage: float = 0.0
    last_adjustment: datetime = field(default_factory=utcnow)


class CleanupSchedule:
    """
    Runs a cleanup callback on a fixed interval in a background thread.

    A failing run is logged and the schedule carries on.
    """

    def __init__(
        self,
        callback: Callable[[], Any],
        interval_seconds: float,
        on_success: Optional[Callable[[], None]] = None
    ):
        """
        Initialize the schedule.

        Args:
            callback: Cleanup function to invoke
            interval_seconds: Seconds between runs
            on_success: Called after every run that did not raise
        """
        self._callback = callback
        self._interval = interval_seconds
        self._on_success = on_success
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            name="memory-cleanup",
            daemon=True
        )

    def start(self) -> "CleanupSchedule":
        """Start the background timer."""
        self._thread.start()
        logger.info(f"Memory cleanup scheduled every {self._interval:.0f}s")
        return self

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.run_once()

    def run_once(self) -> bool:
        """
        Invoke the callback once.

        Returns:
            True if the callback completed, False if it raised
        """
        try:
            logger.info("Starting scheduled memory cleanup")
            self._callback()
        except Exception as e:
            logger.error(f"Error during memory cleanup: {e}")
            return False

        if self._on_success:
            self._on_success()
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the schedule and wait for the background thread."""
        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        """Whether the background thread is alive."""
        return self._thread.is_alive() and not self._stop_event.is_set()


class ScoringEngine:
    """
    Computes decay and priority scores and owns the retention threshold.

    Each engine holds its own copy of the scoring configuration; only
    adjust_parameters writes to it.
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the scoring engine.

        Args:
            config: Scoring configuration (defaults to the global config)
            clock: Returns the current UTC time (injectable for tests)
        """
        self.config = replace(config or get_config().scoring)
        self._clock = clock or utcnow
        self._lock = threading.Lock()

        now = self._clock()
        self._stats = PopulationStats(last_adjustment=now)
        self._last_cleanup = now

        logger.info(
            f"Scoring engine initialized: decay_rate={self.config.decay_rate}, "
            f"priority_threshold={self.config.priority_threshold}"
        )

    @property
    def decay_rate(self) -> float:
        return self.config.decay_rate

    @property
    def priority_threshold(self) -> float:
        return self.config.priority_threshold

    @property
    def stats(self) -> PopulationStats:
        """Snapshot of the population statistics from the last adjustment."""
        return replace(self._stats)

    def now(self) -> datetime:
        """Current time according to the engine clock."""
        return self._clock()

    def _validate(self, entry: ScoredEntry, operation: str) -> None:
        if not isinstance(entry, ScoredEntry):
            raise InvalidMemoryError(f"Invalid memory entry provided for {operation}")
        if not entry.id or entry.content is None or entry.timestamp is None:
            raise InvalidMemoryError(
                f"Invalid memory entry provided for {operation}: missing id, content or timestamp"
            )

    def compute_decay(self, entry: ScoredEntry) -> float:
        """
        Calculate the time- and importance-weighted freshness of an entry.

        Zero or missing importance counts as full importance.

        Args:
            entry: Entry to score

        Returns:
            Decay score in [0, 1]
        """
        self._validate(entry, "decay calculation")

        age = self._clock() - ensure_utc(entry.timestamp)
        age_hours = max(0.0, age.total_seconds() / 3600)
        decay_factor = math.exp(-self.config.decay_rate * age_hours)
        importance_boost = _number(entry.importance, 0.0) or 1.0

        return _clamp(decay_factor * importance_boost, 0.0, 1.0)

    def compute_priority(self, entry: ScoredEntry) -> float:
        """
        Calculate the priority score of an entry.

        Blends decay, relevance and usage; relevance weighs more when the
        population is dominated by important memories.

        Args:
            entry: Entry to score

        Returns:
            Priority score in [0, 1]
        """
        self._validate(entry, "priority calculation")

        decay = self.compute_decay(entry)
        relevance = _clamp(_number(entry.relevance_score, 0.5), 0.0, 1.0)
        usage = max(0.0, _number(entry.usage_count, 0.0))
        usage_score = min(1.0, usage / max(1.0, self._stats.avg_usage * 2))

        relevance_weight = (
            HIGH_IMPORTANCE_RELEVANCE_WEIGHT
            if self._stats.avg_importance > HIGH_IMPORTANCE_LEVEL
            else RELEVANCE_WEIGHT
        )
        usage_weight = 1 - DECAY_WEIGHT - relevance_weight

        priority = (
            decay * DECAY_WEIGHT +
            relevance * relevance_weight +
            usage_score * usage_weight
        )
        return _clamp(priority, 0.0, 1.0)

    def score(self, entry: ScoredEntry) -> ScoredEntry:
        """Return a copy of the entry with fresh decay and priority scores."""
        return entry.model_copy(update={
            "decay_score": self.compute_decay(entry),
            "priority_score": self.compute_priority(entry),
        })

    def to_entry(self, memory: Memory, relevance_score: Optional[float] = None) -> ScoredEntry:
        """
        Build a scored entry for a memory.

        Args:
            memory: Memory to score
            relevance_score: Overrides the memory's stored relevance

        Returns:
            Scored entry
        """
        return self.score(ScoredEntry.from_memory(memory, relevance_score=relevance_score))

    def should_retain(self, entry: ScoredEntry) -> bool:
        """Whether an entry's priority clears the retention threshold."""
        self._validate(entry, "retention check")
        return self.compute_priority(entry) >= self.config.priority_threshold

    def adjust_parameters(self, population: Sequence[ScoredEntry]) -> bool:
        """
        Retune decay rate and priority threshold from population statistics.

        Runs at most once per adjustment window. Growth speeds up decay,
        shrinkage slows it; rising average importance raises the retention
        bar, falling importance lowers it. Both parameters are clamped.

        Args:
            population: Every entry currently stored

        Returns:
            True if an adjustment ran
        """
        with self._lock:
            now = self._clock()
            hours_since = (now - self._stats.last_adjustment).total_seconds() / 3600
            if hours_since < self.config.adjustment_interval_hours:
                return False

            previous = self._stats
            total = len(population)
            if total:
                avg_importance = sum(_number(e.importance, 0.0) for e in population) / total
                avg_usage = sum(_number(e.usage_count, 0.0) for e in population) / total
            else:
                avg_importance = previous.avg_importance
                avg_usage = previous.avg_usage

            cfg = self.config
            if total > previous.total_count * 1.5:
                cfg.decay_rate *= 1.2
            elif total < previous.total_count * 0.5:
                cfg.decay_rate *= 0.8

            if avg_importance > previous.avg_importance * 1.3:
                cfg.priority_threshold *= 1.1
            elif avg_importance < previous.avg_importance * 0.7:
                cfg.priority_threshold *= 0.9

            cfg.decay_rate = _clamp(cfg.decay_rate, cfg.min_decay_rate, cfg.max_decay_rate)
            cfg.priority_threshold = _clamp(
                cfg.priority_threshold,
                cfg.min_priority_threshold,
                cfg.max_priority_threshold
            )

            self._stats = PopulationStats(
                total_count=total,
                avg_importance=avg_importance,
                avg_usage=avg_usage,
                last_adjustment=now
            )

        logger.info(
            f"Adjusted memory parameters: decay_rate={cfg.decay_rate:.4f}, "
            f"priority_threshold={cfg.priority_threshold:.4f}, total={total}, "
            f"avg_importance={avg_importance:.3f}, avg_usage={avg_usage:.3f}"
        )
        return True

    def filter_for_retention(self, population: Sequence[ScoredEntry]) -> List[ScoredEntry]:
        """
        Adjust parameters, then keep the entries worth retaining.

        Args:
            population: Every entry currently stored

        Returns:
            Entries passing should_retain
        """
        self.adjust_parameters(population)
        return [entry for entry in population if self.should_retain(entry)]

    def schedule_cleanup(self, callback: Callable[[], Any]) -> CleanupSchedule:
        """
        Invoke callback every cleanup_interval_ms in the background.

        Args:
            callback: Cleanup function

        Returns:
            The running schedule (call stop() to cancel)
        """
        schedule = CleanupSchedule(
            callback,
            self.config.cleanup_interval_ms / 1000.0,
            on_success=self.mark_cleanup
        )
        return schedule.start()

    def mark_cleanup(self) -> None:
        """Record that a cleanup just completed."""
        self._last_cleanup = self._clock()

    def time_since_last_cleanup(self) -> timedelta:
        return self._clock() - self._last_cleanup

    def is_cleanup_due(self) -> bool:
        """Whether a full cleanup interval has passed since the last cleanup."""
        interval = timedelta(milliseconds=self.config.cleanup_interval_ms)
        return self.time_since_last_cleanup() >= interval
