"""Revision graph reconstruction.

A ``Workspace`` loads the part of the revision DAG a single operation
needs, orders it for replay, and answers reachability questions over it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import networkx as nx

from .codec import NULL_NODE, hash_entry
from .errors import InternalError, NoCommonAncestorFound
from .models import PerspectiveDiff, PerspectiveDiffEntryReference, Snapshot
from .retriever.base import Retriever
from .snapshots import get_snapshot, snapshot_diff

logger = logging.getLogger(__name__)


@dataclass
class _Side:
    """Search state for one origin of the common-ancestor search."""

    start: str
    frontier: list[str] = field(default_factory=list)
    visited: dict[str, PerspectiveDiffEntryReference] = field(default_factory=dict)
    covered: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.frontier = [self.start]

    def knows(self, node: str) -> bool:
        return node in self.visited or node in self.covered or node in self.frontier


class Workspace:
    """In-memory view of a region of the revision graph.

    Typical use::

        ws = Workspace(retriever)
        ws.build_diffs(latest, current)
        if ws.is_reachable(latest, current):
            diff = ws.squashed_fast_forward_from(current)
    """

    def __init__(self, retriever: Retriever) -> None:
        self.retriever = retriever
        self.entry_map: dict[str, PerspectiveDiffEntryReference] = {}
        self.sorted_diffs: list[tuple[str, PerspectiveDiffEntryReference]] | None = None
        self.common_ancestors: list[str] = []
        self.graph: nx.DiGraph | None = None
        # Populated by collect_until_common_ancestor.
        self.theirs_only: set[str] = set()
        self.ours_only: set[str] = set()
        self.ours_known: set[str] = set()
        self._snapshots: dict[str, Snapshot] = {}
        self._refs: dict[str, PerspectiveDiffEntryReference] = {}

    def _load(self, node: str) -> PerspectiveDiffEntryReference:
        ref = self._refs.get(node)
        if ref is None:
            ref = self.retriever.get(node, PerspectiveDiffEntryReference)
            self._refs[node] = ref
        return ref

    # -- Collection --

    def collect_only_from_latest(self, latest: str) -> None:
        """Collect everything reachable from ``latest`` down to snapshots.

        A node with a snapshot becomes a parent-less entry whose content
        is the snapshot aggregate.
        """
        branches = [latest]
        while branches:
            node = branches.pop()
            if node in self.entry_map:
                continue
            snapshot = get_snapshot(self.retriever, node)
            if snapshot is not None:
                self._snapshots[node] = snapshot
                self.entry_map[node] = PerspectiveDiffEntryReference(
                    diff=hash_entry(snapshot), parents=None
                )
                continue
            ref = self._load(node)
            self.entry_map[node] = ref
            # Depth-first, first parent next.
            branches.extend(reversed(ref.parents or ()))
        self.theirs_only = set(self.entry_map)
        logger.debug("collected %d revisions from %s", len(self.entry_map), latest)

    def collect_until_common_ancestor(self, theirs: str, ours: str) -> str:
        """Search back from both revisions until their histories meet.

        Both sides advance one breadth-first round in turn until neither
        has anything left to expand. Their side stops at anything our
        side already knows. Our side keeps walking so that everything it
        has seen is marked, and stops at snapshots, which mark their
        whole history as known. Our-only revisions are then walked in
        full, so a snapshot on our tip does not hide our side of a fork.

        Afterwards ``entry_map`` holds their-only revisions, our-only
        revisions that are not ancestors of a meeting point, and the
        meeting points themselves with ``parents`` cleared.

        Returns:
            The common ancestor: ``ours`` itself when it lies in their
            history, otherwise the first meeting point found.

        Raises:
            NoCommonAncestorFound: If the two histories never meet.
        """
        their_side = _Side(theirs)
        our_side = _Side(ours)

        rounds = 0
        while their_side.frontier or our_side.frontier:
            rounds += 1
            their_side.frontier = self._expand(their_side, other=our_side)
            our_side.frontier = self._expand(our_side, other=None)

        known = set(our_side.visited) | our_side.covered
        theirs_only = [h for h in their_side.visited if h not in known]
        below_theirs_only = {
            p for h in theirs_only for p in their_side.visited[h].parents or ()
        }
        meeting = [
            h
            for h in their_side.visited
            if h in known and (h == theirs or h in below_theirs_only)
        ]
        if not meeting:
            raise NoCommonAncestorFound(theirs, ours)

        ours_only = self._ours_since(ours, meeting, their_side)

        self.entry_map = {}
        for h in theirs_only:
            self.entry_map[h] = their_side.visited[h]
        for h in ours_only:
            self.entry_map[h] = self._load(h)
        for h in meeting:
            self.entry_map[h] = PerspectiveDiffEntryReference(
                diff=self._load(h).diff, parents=None
            )

        if ours in meeting:
            meeting.remove(ours)
            meeting.insert(0, ours)
        self.common_ancestors = meeting
        self.theirs_only = set(theirs_only)
        self.ours_only = set(ours_only)
        self.ours_known = known
        logger.debug(
            "common ancestor search %s/%s: %d rounds, %d theirs, %d ours, meet at %s",
            theirs,
            ours,
            rounds,
            len(theirs_only),
            len(ours_only),
            meeting,
        )
        return meeting[0]

    def _ours_since(
        self, ours: str, meeting: list[str], their_side: _Side
    ) -> list[str]:
        """Our revisions that are not in the history of any meeting point.

        Walks the full branch from ``ours``, past any snapshot our side
        stopped at during the search.
        """
        if ours in meeting:
            return []
        shared = self._history_of(meeting)
        stop = shared | set(meeting) | set(their_side.visited)
        found: list[str] = []
        seen: set[str] = set()
        stack = [ours]
        while stack:
            node = stack.pop()
            if node in seen or node in stop:
                continue
            seen.add(node)
            found.append(node)
            stack.extend(self._load(node).parents or ())
        return found

    def _history_of(self, nodes: list[str]) -> set[str]:
        """Ancestors of ``nodes``, taken whole from any snapshot on the way."""
        history: set[str] = set()
        stack = list(nodes)
        while stack:
            node = stack.pop()
            snapshot = get_snapshot(self.retriever, node)
            if snapshot is not None:
                history.update(snapshot.included_diffs)
                continue
            for parent in self._load(node).parents or ():
                if parent not in history:
                    history.add(parent)
                    stack.append(parent)
        return history

    def _expand(self, side: _Side, other: _Side | None) -> list[str]:
        next_frontier: list[str] = []
        for node in side.frontier:
            if node in side.visited:
                continue
            side.visited[node] = self._load(node)
            if other is not None:
                if other.knows(node):
                    continue
            else:
                snapshot = get_snapshot(self.retriever, node)
                if snapshot is not None:
                    side.covered.update(snapshot.included_diffs)
                    continue
            for parent in side.visited[node].parents or ():
                if parent not in side.visited and parent not in next_frontier:
                    next_frontier.append(parent)
        return next_frontier

    # -- Ordering and graph --

    def topo_sort_graph(self) -> list[tuple[str, PerspectiveDiffEntryReference]]:
        """Order ``entry_map`` so every parent precedes its children.

        Starts from hash order and moves a node in front of its earliest
        child until no node has a child before it. Parents outside
        ``entry_map`` are ignored.
        """
        order = sorted(self.entry_map)
        children: dict[str, list[str]] = {}
        for h, ref in self.entry_map.items():
            for parent in ref.parents or ():
                if parent in self.entry_map:
                    children.setdefault(parent, []).append(h)

        max_moves = len(order) * len(order) + len(order)
        moves = 0
        while True:
            position = {h: i for i, h in enumerate(order)}
            move = None
            for i, h in enumerate(order):
                earlier = [position[c] for c in children.get(h, ()) if position[c] < i]
                if earlier:
                    move = (i, min(earlier))
                    break
            if move is None:
                break
            moves += 1
            if moves > max_moves:
                raise InternalError(
                    "Topological sort did not settle; revision graph has a cycle"
                )
            source, target = move
            order.insert(target, order.pop(source))

        self.sorted_diffs = [(h, self.entry_map[h]) for h in order]
        return self.sorted_diffs

    def build_graph(self) -> nx.DiGraph:
        """Directed graph with an edge from each revision to each parent.

        Revisions without a parent in ``entry_map`` point at ``NULL_NODE``.
        """
        graph = nx.DiGraph()
        graph.add_node(NULL_NODE)
        for h, ref in self.entry_map.items():
            graph.add_node(h)
            parents = [p for p in ref.parents or () if p in self.entry_map]
            if not parents:
                graph.add_edge(h, NULL_NODE)
            for parent in parents:
                graph.add_edge(h, parent)
        self.graph = graph
        return graph

    def build_diffs(self, theirs: str, ours: str) -> str:
        """Search, sort and build the graph in one call."""
        ancestor = self.collect_until_common_ancestor(theirs, ours)
        self.topo_sort_graph()
        self.build_graph()
        return ancestor

    def _require_node(self, node: str) -> None:
        if self.graph is None:
            raise InternalError("Graph must be built before querying paths")
        if node not in self.graph:
            raise InternalError(f"Revision {node} is not in the graph")

    def get_paths(self, child: str, ancestor: str) -> list[list[str]]:
        """All simple paths from ``child`` back to ``ancestor``."""
        self._require_node(child)
        self._require_node(ancestor)
        return [list(path) for path in nx.all_simple_paths(self.graph, child, ancestor)]

    def is_reachable(self, child: str, ancestor: str) -> bool:
        self._require_node(child)
        self._require_node(ancestor)
        return nx.has_path(self.graph, child, ancestor)

    def path_nodes(self, child: str, ancestor: str) -> set[str]:
        """Every revision on some path from ``child`` to ``ancestor``."""
        if not self.is_reachable(child, ancestor):
            return set()
        below_child = nx.descendants(self.graph, child) | {child}
        above_ancestor = nx.ancestors(self.graph, ancestor) | {ancestor}
        return below_child & above_ancestor

    # -- Content --

    def load_diff(self, node: str) -> PerspectiveDiff:
        """Content of a collected revision, snapshot aggregates included."""
        if node in self._snapshots:
            return snapshot_diff(self.retriever, self._snapshots[node])
        ref = self.entry_map.get(node)
        if ref is None:
            raise InternalError(f"Revision {node} was not collected")
        return self.retriever.get(ref.diff, PerspectiveDiff)

    def _sorted(self) -> list[tuple[str, PerspectiveDiffEntryReference]]:
        if self.sorted_diffs is None:
            return self.topo_sort_graph()
        return self.sorted_diffs

    def _squash(self, nodes: set[str]) -> PerspectiveDiff:
        # Merge content is a replay of revisions collected alongside it.
        return PerspectiveDiff.concat(
            self.load_diff(h)
            for h, ref in self._sorted()
            if h in nodes and not ref.is_merge()
        )

    def squashed_diff(self) -> PerspectiveDiff:
        """Every collected revision's content in replay order."""
        return self._squash(set(self.entry_map) - {NULL_NODE})

    def squashed_fast_forward_from(self, base: str) -> PerspectiveDiff:
        """Content of the revisions their side has and ``base`` lacks."""
        if base not in self.common_ancestors:
            raise InternalError(f"{base} is not a common ancestor of this workspace")
        return self._squash(self.theirs_only)

    def squashed_fork_diff(self) -> PerspectiveDiff:
        """Content of the revisions only our side has, in replay order."""
        return self._squash(self.ours_only)

    def unseen_diffs(self) -> list[tuple[str, PerspectiveDiffEntryReference]]:
        return [
            (h, ref)
            for h, ref in self._sorted()
            if h in self.theirs_only and not ref.is_merge()
        ]
