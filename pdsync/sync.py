"""Commit and pull: the peer-facing side of perspective diff sync."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from .chunked_diffs import ChunkedDiffs
from .config import SyncConfig
from .errors import InternalError, NoCommonAncestorFound
from .models import (
    DiffBroadcast,
    HashReference,
    Perspective,
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    utc_now,
)
from .render import render_diffs
from .retriever.base import Retriever
from .signals import Notifier, NullNotifier
from .snapshots import SNAPSHOT_TAG, entries_since_snapshot, generate_snapshot
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PullResult:
    """Outcome of the most recent pull."""

    strategy: str  # no_op, bootstrap, stale, fast_forward, merge or blind_merge
    revision: str | None
    diff: PerspectiveDiff


def _without(links: tuple, drop: tuple) -> tuple:
    dropped = set(drop)
    return tuple(link for link in links if link not in dropped)


class PerspectiveDiffSync:
    """One peer's replica of a shared perspective.

    ``commit`` appends local changes; ``pull`` brings in changes other
    peers committed, merging when histories have forked. The retriever
    decides where entries live and which agent this peer is.
    """

    def __init__(
        self,
        retriever: Retriever,
        config: SyncConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.retriever = retriever
        self.config = config if config is not None else SyncConfig()
        self.notifier = notifier if notifier is not None else NullNotifier()
        self.last_pull_result: PullResult | None = None
        self._lock = threading.RLock()

    def current_revision(self) -> str | None:
        ref = self.retriever.current_revision()
        return ref.hash if ref is not None else None

    def latest_revision(self) -> str | None:
        ref = self.retriever.latest_revision()
        return ref.hash if ref is not None else None

    # -- Commit --

    def commit(self, diff: PerspectiveDiff) -> str:
        """Append ``diff`` on top of this peer's current revision.

        Pulls first if the shared latest revision has moved, emitting
        whatever came in. Diffs over ``config.chunk_size`` changes are
        stored as consecutive revisions.

        Returns:
            Hash of the new (last) revision.
        """
        with self._lock:
            start = time.perf_counter()
            if self.current_revision() != self.latest_revision():
                pulled = self.pull()
                if not pulled.is_empty():
                    self.notifier.emit(pulled)

            parent = self.current_revision()
            ref = None
            for chunk in self._split(diff):
                parent, ref = self._commit_revision(chunk, parent)
            if ref is None or parent is None:
                raise InternalError("Commit produced no revision")

            now = utc_now()
            self.retriever.update_latest_revision(parent, now)
            self.retriever.update_current_revision(parent, now)
            logger.debug(
                "committed %s (%d changes) in %.1f ms",
                parent,
                diff.total_diff_number(),
                (time.perf_counter() - start) * 1000,
            )

            if self.config.enable_signals:
                self._broadcast(
                    DiffBroadcast(diff=diff, reference=ref, reference_hash=parent)
                )
            return parent

    def _split(self, diff: PerspectiveDiff) -> list[PerspectiveDiff]:
        if diff.total_diff_number() <= self.config.chunk_size:
            return [diff]
        chunked = ChunkedDiffs(self.config.chunk_size)
        chunked.add_diff(diff)
        logger.debug(
            "splitting %d changes into %d revisions",
            diff.total_diff_number(),
            len(chunked),
        )
        return [chunk for chunk in chunked.chunks if not chunk.is_empty()]

    def _commit_revision(
        self, diff: PerspectiveDiff, parent: str | None
    ) -> tuple[str, PerspectiveDiffEntryReference]:
        ref = PerspectiveDiffEntryReference(
            diff=self.retriever.create_entry(diff),
            parents=(parent,) if parent is not None else None,
        )
        ref_hash = self.retriever.create_entry(ref)
        if parent is not None and (
            entries_since_snapshot(self.retriever, parent) + 1
            >= self.config.snapshot_interval
        ):
            snapshot = generate_snapshot(self.retriever, ref_hash)
            snapshot_hash = self.retriever.create_entry(snapshot)
            self.retriever.create_link(ref_hash, snapshot_hash, SNAPSHOT_TAG)
            logger.debug("cut snapshot %s at %s", snapshot_hash, ref_hash)
        return ref_hash, ref

    def _broadcast(self, broadcast: DiffBroadcast) -> None:
        try:
            agents = self.notifier.active_agents()
            if agents:
                self.notifier.send(agents, broadcast)
        except Exception:
            logger.warning(
                "failed to notify peers of %s", broadcast.reference_hash, exc_info=True
            )

    # -- Pull --

    def pull(self) -> PerspectiveDiff:
        """Reconcile this peer with the shared latest revision.

        Returns:
            The changes this peer had not seen, in replay order.
        """
        with self._lock:
            start = time.perf_counter()
            result = self._pull()
            self.last_pull_result = result
            logger.debug(
                "pull: %s to %s, %d changes in %.1f ms",
                result.strategy,
                result.revision,
                result.diff.total_diff_number(),
                (time.perf_counter() - start) * 1000,
            )
            return result.diff

    def _pull(self) -> PullResult:
        latest = self.retriever.latest_revision()
        current = self.retriever.current_revision()
        current_hash = current.hash if current is not None else None

        if latest is None or latest.hash == current_hash:
            return PullResult("no_op", current_hash, PerspectiveDiff())

        workspace = Workspace(self.retriever)
        if current is None:
            workspace.collect_only_from_latest(latest.hash)
            diff = workspace.squashed_diff()
            self.retriever.update_current_revision(latest.hash, latest.timestamp)
            return PullResult("bootstrap", latest.hash, diff)

        try:
            workspace.build_diffs(latest.hash, current.hash)
        except NoCommonAncestorFound:
            logger.debug(
                "%s and %s share no history, merging blind", latest.hash, current.hash
            )
            return self._blind_merge(latest, current)

        if latest.hash in workspace.ours_known:
            # Someone advertised a revision we already build on.
            self.retriever.update_latest_revision(current.hash, utc_now())
            return PullResult("stale", current.hash, PerspectiveDiff())

        if workspace.is_reachable(latest.hash, current.hash):
            diff = workspace.squashed_fast_forward_from(current.hash)
            self.retriever.update_current_revision(latest.hash, latest.timestamp)
            return PullResult("fast_forward", latest.hash, diff)

        fork = workspace.squashed_fork_diff()
        merge_hash = self._merge(latest.hash, current.hash, fork)
        unseen = PerspectiveDiff.concat(
            workspace.load_diff(h) for h, _ in workspace.unseen_diffs()
        )
        return PullResult("merge", merge_hash, unseen)

    def _blind_merge(self, latest: HashReference, current: HashReference) -> PullResult:
        workspace = Workspace(self.retriever)
        workspace.collect_only_from_latest(latest.hash)
        diff = workspace.squashed_diff()
        merge_hash = self._merge(latest.hash, current.hash, PerspectiveDiff())
        return PullResult("blind_merge", merge_hash, diff)

    def _merge(self, latest: str, current: str, diff: PerspectiveDiff) -> str:
        ref = PerspectiveDiffEntryReference(
            diff=self.retriever.create_entry(diff), parents=(latest, current)
        )
        merge_hash = self.retriever.create_entry(ref)
        now = utc_now()
        self.retriever.update_current_revision(merge_hash, now)
        self.retriever.update_latest_revision(merge_hash, now)
        logger.debug("created merge %s of %s and %s", merge_hash, latest, current)
        return merge_hash

    # -- Render --

    def render(self) -> Perspective:
        """Replay the full history up to the current revision."""
        current = self.retriever.current_revision()
        if current is None:
            raise InternalError("Cannot render without a current revision")
        workspace = Workspace(self.retriever)
        workspace.collect_only_from_latest(current.hash)
        return render_diffs(
            workspace.load_diff(h)
            for h, ref in workspace.topo_sort_graph()
            if not ref.is_merge()
        )

    # -- Signals --

    def handle_broadcast(self, broadcast: DiffBroadcast) -> PerspectiveDiff:
        """Apply a commit announced by another peer.

        When the announced revision sits directly on our current one the
        pointer just moves forward; the caller already has the content in
        ``broadcast.diff``. Otherwise this pulls and returns what came in,
        minus the broadcast's own links.
        """
        with self._lock:
            current = self.current_revision()
            if current is not None:
                if broadcast.reference_hash == current:
                    return PerspectiveDiff()
                if broadcast.reference.parents == (current,):
                    self.retriever.update_current_revision(
                        broadcast.reference_hash, utc_now()
                    )
                    logger.debug(
                        "fast-forwarded to broadcast %s", broadcast.reference_hash
                    )
                    return PerspectiveDiff()

            pulled = self.pull()
            remaining = PerspectiveDiff(
                additions=_without(pulled.additions, broadcast.diff.additions),
                removals=_without(pulled.removals, broadcast.diff.removals),
            )
            if not remaining.is_empty():
                self.notifier.emit(remaining)
            return remaining
