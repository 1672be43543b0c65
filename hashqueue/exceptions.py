"""
Custom exceptions raised by the hash queue runtime.

Keeping library-specific errors in one module gives users a predictable
import surface for catching and handling storage and corruption edge cases.
"""


class HashQueueError(Exception):
    """Base error type for all library-level exceptions."""


class StoreError(HashQueueError):
    """
    Raised when the durable store cannot be opened, read, written or flushed.

    The message carries the underlying engine diagnostic and the original
    exception is chained as ``__cause__``. After a failed write or flush the
    queue instance should be discarded and re-opened.
    """


class CodecError(HashQueueError):
    """
    Raised when a value cannot be serialized or deserialized.

    On decode this indicates corrupted durable data or a stored type that
    does not match the codec used to open the queue.
    """


class SchemaMismatchError(CodecError):
    """
    Raised by ``open`` when the region was written with a different codec.

    The check runs before any stored value is decoded, so an incompatible
    region is rejected instead of failing part-way through deserialization.
    """

    def __init__(self, region: str, stored: str, expected: str) -> None:
        super().__init__(
            f"Region {region!r} holds values written with schema {stored!r}, "
            f"but the queue was opened with {expected!r}."
        )
        self.region = region
        self.stored = stored
        self.expected = expected


class SyncError(HashQueueError):
    """
    Raised when the durable region and the membership set have diverged.

    The queue is no longer valid once this is raised; callers must re-open
    (and ideally clear) the queue before using it again.
    """

    def __init__(self, operation: str) -> None:
        super().__init__(
            "Durable store and membership set fell out of sync, the queue is "
            f"no longer valid (detected by {operation})."
        )
        self.operation = operation


class BackendConfigurationError(HashQueueError):
    """Raised when a store backend name or its options are invalid."""


class BackendNotAvailableError(HashQueueError):
    """Raised when a backend's optional client library is not installed."""
