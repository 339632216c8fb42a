"""pdsync: replicated perspective diffs over a content-addressed store."""

from .chunked_diffs import ChunkedDiffs
from .codec import NULL_NODE
from .config import SyncConfig
from .errors import (
    DecodeError,
    InternalError,
    NoCommonAncestorFound,
    NotFound,
    SyncError,
)
from .factory import create_sync
from .kv.base import KVStore
from .models import (
    DiffBroadcast,
    ExpressionProof,
    HashReference,
    LinkExpression,
    Perspective,
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    Snapshot,
    Triple,
)
from .render import render_diffs
from .retriever import MockRetriever, Retriever, StoreRetriever
from .signals import LocalNetwork, Notifier, NullNotifier
from .sync import PerspectiveDiffSync, PullResult
from .workspace import Workspace

__all__ = [
    "NULL_NODE",
    "ChunkedDiffs",
    "DecodeError",
    "DiffBroadcast",
    "ExpressionProof",
    "HashReference",
    "InternalError",
    "KVStore",
    "LinkExpression",
    "LocalNetwork",
    "MockRetriever",
    "NoCommonAncestorFound",
    "NotFound",
    "Notifier",
    "NullNotifier",
    "Perspective",
    "PerspectiveDiff",
    "PerspectiveDiffEntryReference",
    "PerspectiveDiffSync",
    "PullResult",
    "Retriever",
    "Snapshot",
    "StoreRetriever",
    "SyncError",
    "SyncConfig",
    "Triple",
    "Workspace",
    "create_sync",
    "render_diffs",
]
