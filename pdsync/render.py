"""Materialize a link set from ordered diffs."""

from typing import Iterable

from .models import LinkExpression, Perspective, PerspectiveDiff


def render_diffs(diffs: Iterable[PerspectiveDiff]) -> Perspective:
    """Replay ``diffs`` in order: each diff's additions, then its removals."""
    links: dict[LinkExpression, None] = {}
    for diff in diffs:
        links.update(dict.fromkeys(diff.additions))
        for link in diff.removals:
            links.pop(link, None)
    return Perspective(links=tuple(links))
