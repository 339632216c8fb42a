"""Factory for a ready-to-use sync peer."""

from __future__ import annotations

from .config import SyncConfig
from .kv.base import KVStore
from .retriever.kv import StoreRetriever
from .signals import Notifier
from .sync import PerspectiveDiffSync


def create_sync(
    storage: str | KVStore = "memory",
    *,
    path: str | None = None,
    agent: str = "local",
    notifier: Notifier | None = None,
    **config,
) -> PerspectiveDiffSync:
    """Create a ``PerspectiveDiffSync`` with sensible defaults.

    Args:
        storage: ``"memory"`` (default), ``"disk"``, or an existing
            ``KVStore`` to share with other peers.
        path: Required when ``storage="disk"``. Directory path for
            the disk backend.
        agent: Identity of this peer; scopes its current revision.
        notifier: Peer presence and transport. Defaults to none.
        **config: ``SyncConfig`` fields (``snapshot_interval``,
            ``chunk_size``, ``enable_signals``).

    Returns:
        A ``PerspectiveDiffSync`` over a ``StoreRetriever``.
    """
    if isinstance(storage, KVStore):
        backend = storage
    elif storage == "memory":
        from .kv.memory import Memory

        backend = Memory()
    elif storage == "disk":
        if path is None:
            raise ValueError("path is required when storage='disk'")
        from .kv.disk import Disk

        backend = Disk(path)
    else:
        raise ValueError(f"Unknown storage: {storage!r}")

    return PerspectiveDiffSync(
        StoreRetriever(backend, agent),
        config=SyncConfig(**config),
        notifier=notifier,
    )
