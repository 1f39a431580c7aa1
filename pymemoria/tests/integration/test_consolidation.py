"""Integration tests for the short/mid/long summary pipeline.

Condensation uses a stub that returns ``COND(t1,t2,...)``.
"""

from datetime import datetime, timedelta, timezone

import pytest

from pymemoria.core.memory.consolidation import MERGE_LONG_FRAMING, TIER_RULES, SummaryPipeline
from pymemoria.data.schemas.models import SummaryTier

T0 = datetime(2024, 1, 5, 14, 7, tzinfo=timezone.utc)


def _seed(repository, tier, texts, session_id="session-1"):
    return [
        repository.save_summary(tier, text, session_id, created_at=T0 + timedelta(minutes=i))
        for i, text in enumerate(texts)
    ]


def _unprocessed(repository, tier):
    return [s.text for s in repository.get_unprocessed_summaries(tier)]


class TestCheckShort:
    """Test short to mid consolidation."""

    def test_waits_for_six_short_summaries(self, pipeline, repository, condenser):
        """Test that fewer than six short summaries are left alone."""
        _seed(repository, SummaryTier.SHORT, ["S1", "S2", "S3", "S4", "S5"])
        assert pipeline.check_short() is None
        assert condenser.calls == []
        assert len(_unprocessed(repository, SummaryTier.SHORT)) == 5

    def test_condenses_oldest_five(self, pipeline, repository, condenser):
        """Test condensing the oldest five short summaries."""
        _seed(repository, SummaryTier.SHORT, ["S1", "S2", "S3", "S4", "S5", "S6"])

        mid = pipeline.check_short()

        assert mid.tier == SummaryTier.MID
        assert mid.text == "COND(S1,S2,S3,S4,S5)"
        assert mid.session_id == "session-1"
        assert _unprocessed(repository, SummaryTier.SHORT) == ["S6"]
        assert _unprocessed(repository, SummaryTier.MID) == ["COND(S1,S2,S3,S4,S5)"]
        assert condenser.calls[0][1] == TIER_RULES[SummaryTier.SHORT].framing

    def test_explicit_session_id_recorded(self, pipeline, repository):
        """Test recording an explicit session on the mid summary."""
        _seed(repository, SummaryTier.SHORT, [f"S{i}" for i in range(6)])
        assert pipeline.check_short("session-9").session_id == "session-9"

    def test_condenser_failure_leaves_sources_unprocessed(self, repository, mocker):
        """Test that a failed condensation writes nothing."""
        failing = mocker.Mock(side_effect=TimeoutError("llm timeout"))
        pipeline = SummaryPipeline(repository, failing)
        _seed(repository, SummaryTier.SHORT, [f"S{i}" for i in range(6)])

        with pytest.raises(TimeoutError):
            pipeline.check_short()
        assert len(_unprocessed(repository, SummaryTier.SHORT)) == 6
        assert _unprocessed(repository, SummaryTier.MID) == []


class TestCheckMid:
    """Test mid to long consolidation."""

    def test_waits_for_three_mid_summaries(self, pipeline, repository, condenser):
        """Test that fewer than three mid summaries are left alone."""
        _seed(repository, SummaryTier.MID, ["M1", "M2"])
        assert pipeline.check_mid() is None
        assert condenser.calls == []

    def test_first_long_summary_stored_directly(self, pipeline, repository, condenser):
        """Test storing the first long summary."""
        _seed(repository, SummaryTier.MID, ["M1", "M2", "M3"])

        long_summary = pipeline.check_mid()

        assert long_summary.text == "COND(M1,M2,M3)"
        assert long_summary.session_id is None
        assert len(condenser.calls) == 1
        assert _unprocessed(repository, SummaryTier.MID) == []
        assert _unprocessed(repository, SummaryTier.LONG) == ["COND(M1,M2,M3)"]

    def test_merges_into_existing_long_summary(self, pipeline, repository, condenser):
        """Test merging into the existing long summary."""
        (old_long,) = _seed(repository, SummaryTier.LONG, ["L0"], session_id=None)
        _seed(repository, SummaryTier.MID, ["M1", "M2", "M3"])

        long_summary = pipeline.check_mid()

        assert long_summary.text == "COND(L0,COND(M1,M2,M3))"
        assert condenser.calls[1] == (["L0", "COND(M1,M2,M3)"], MERGE_LONG_FRAMING)
        assert _unprocessed(repository, SummaryTier.LONG) == ["COND(L0,COND(M1,M2,M3))"]
        audit = {s.id: s for s in repository.list_summaries(SummaryTier.LONG)}
        assert audit[old_long.id].processed is True

    def test_merge_failure_leaves_everything_unprocessed(self, repository, mocker):
        """Test that a failed merge writes nothing."""
        condense = mocker.Mock(side_effect=["COND(M1,M2,M3)", RuntimeError("llm down")])
        pipeline = SummaryPipeline(repository, condense)
        _seed(repository, SummaryTier.LONG, ["L0"], session_id=None)
        _seed(repository, SummaryTier.MID, ["M1", "M2", "M3"])

        with pytest.raises(RuntimeError):
            pipeline.check_mid()
        assert _unprocessed(repository, SummaryTier.MID) == ["M1", "M2", "M3"]
        assert _unprocessed(repository, SummaryTier.LONG) == ["L0"]


class TestConsolidationPass:
    """Test full consolidation passes."""

    def test_new_mid_counts_toward_same_pass(self, pipeline, repository):
        """Test that a new mid summary counts in the same pass."""
        _seed(repository, SummaryTier.MID, ["M1", "M2"])
        _seed(repository, SummaryTier.SHORT, [f"S{i}" for i in range(6)])

        pipeline.consolidate("session-1")

        assert _unprocessed(repository, SummaryTier.MID) == []
        assert len(_unprocessed(repository, SummaryTier.LONG)) == 1

    def test_repeated_passes_are_idempotent(self, pipeline, repository, condenser):
        """Test that extra passes change nothing."""
        _seed(repository, SummaryTier.SHORT, [f"S{i}" for i in range(6)])
        pipeline.consolidate()
        pipeline.consolidate()

        assert len(condenser.calls) == 1
        assert len(_unprocessed(repository, SummaryTier.SHORT)) == 1

    def test_save_short_summary(self, pipeline, repository):
        """Test saving a session summary."""
        summary = pipeline.save_short_summary("Posted about frogs", "session-2")
        assert summary.tier == SummaryTier.SHORT
        assert _unprocessed(repository, SummaryTier.SHORT) == ["Posted about frogs"]


class TestActiveSummaries:
    """Test the active summaries read surface."""

    def test_no_summaries(self, pipeline):
        """Test the block with no active summaries."""
        assert pipeline.get_active_summaries() == "No active summaries found."

    def test_formatted_block(self, pipeline, repository):
        """Test the formatted active summaries block."""
        repository.save_summary(SummaryTier.LONG, "The long story", created_at=T0)
        _seed(repository, SummaryTier.MID, ["M1", "M2"])
        _seed(repository, SummaryTier.SHORT, ["S1"])

        block = pipeline.get_active_summaries()

        assert block == "\n".join([
            "### LONG TERM SUMMARY\n[05/01/24 - 2:07 PM UTC]\nThe long story\n",
            "### MID-TERM SUMMARIES",
            "[05/01/24 - 2:07 PM UTC]\nM1\n",
            "[05/01/24 - 2:08 PM UTC]\nM2\n",
            "### SHORT-TERM SUMMARIES",
            "[05/01/24 - 2:07 PM UTC]\nS1\n",
        ])

    def test_get_active_structure(self, pipeline, repository):
        """Test the structured active summaries."""
        _seed(repository, SummaryTier.SHORT, ["S1", "S2"])
        active = pipeline.get_active()
        assert active.long is None
        assert active.mid == []
        assert [s.text for s in active.short] == ["S1", "S2"]
