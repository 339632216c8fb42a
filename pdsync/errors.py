"""pdsync error types."""


class SyncError(Exception):
    """Base class for all perspective diff sync errors."""


class NotFound(SyncError, KeyError):
    """Raised when an entry or a required link is absent from the store.

    Attributes:
        hash: The address that could not be resolved.
    """

    def __init__(self, hash: str, what: str = "entry") -> None:
        self.hash = hash
        self.what = what
        super().__init__(f"Could not find {what} {hash}")

    def __str__(self) -> str:
        return self.args[0]


class DecodeError(SyncError, ValueError):
    """Raised when a stored value does not match the expected shape."""


class NoCommonAncestorFound(SyncError):
    """Raised when two revisions share no root.

    The caller recovers by doing a blind union merge of both tips.
    """

    def __init__(self, theirs: str, ours: str) -> None:
        self.theirs = theirs
        self.ours = ours
        super().__init__(f"No common ancestor found between {theirs} and {ours}")


class InternalError(SyncError):
    """Raised when the revision graph is in an impossible state. Not retried."""
