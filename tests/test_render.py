"""Tests for replaying diffs into a link set."""

from pdsync.models import Perspective, PerspectiveDiff
from pdsync.render import render_diffs
from pdsync.retriever import node_link


class TestRenderDiffs:
    def test_empty(self):
        assert render_diffs([]) == Perspective()

    def test_additions_in_order_without_duplicates(self):
        a, b = node_link("a"), node_link("b")
        result = render_diffs(
            [PerspectiveDiff(additions=(a, b)), PerspectiveDiff(additions=(a,))]
        )
        assert result.links == (a, b)
        assert len(result) == 2

    def test_removal_after_addition(self):
        a, b = node_link("a"), node_link("b")
        result = render_diffs(
            [PerspectiveDiff(additions=(a, b)), PerspectiveDiff(removals=(a,))]
        )
        assert result.links == (b,)
        assert a not in result

    def test_removal_within_same_diff_wins(self):
        a = node_link("a")
        both = PerspectiveDiff(additions=(a,), removals=(a,))
        assert render_diffs([both]).links == ()

    def test_readd_after_removal(self):
        a = node_link("a")
        result = render_diffs(
            [
                PerspectiveDiff(additions=(a,)),
                PerspectiveDiff(removals=(a,)),
                PerspectiveDiff(additions=(a,)),
            ]
        )
        assert a in result

    def test_removing_unknown_link_is_ignored(self):
        assert render_diffs([PerspectiveDiff(removals=(node_link("x"),))]).links == ()
