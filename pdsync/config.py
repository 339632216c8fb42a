"""Sync configuration."""

from dataclasses import dataclass

SNAPSHOT_INTERVAL = 100
CHUNK_SIZE = 10000


@dataclass(frozen=True)
class SyncConfig:
    """Tunables for ``PerspectiveDiffSync``.

    Attributes:
        snapshot_interval: Cut a snapshot once this many non-merge
            revisions have accumulated since the last one.
        chunk_size: Largest number of changes committed as one revision;
            bigger diffs are split across consecutive revisions.
        enable_signals: Broadcast each commit to active peers.
    """

    snapshot_interval: int = SNAPSHOT_INTERVAL
    chunk_size: int = CHUNK_SIZE
    enable_signals: bool = True

    def __post_init__(self) -> None:
        if self.snapshot_interval <= 0:
            raise ValueError(
                f"snapshot_interval must be positive, got {self.snapshot_interval}"
            )
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
