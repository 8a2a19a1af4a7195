"""
Error taxonomy for the client layer.

InvalidInput is raised while building a batch and never reaches the network.
RemoteReadFailure is captured per reader as an error flag. RemoteWriteFailure
is captured by the executor. PartialParseSkipped marks a single bad record
inside a bulk traversal and is swallowed by the traversal itself.
"""

from __future__ import annotations


class YumeError(Exception):
    """Base class for all client-layer errors."""


class NotAuthorized(YumeError):
    """No signing identity is available."""

    def __init__(self, message: str = "Wallet not connected") -> None:
        super().__init__(message)


class InvalidInput(YumeError, ValueError):
    """Local validation failure while building a batch."""


class LinearResourceError(InvalidInput):
    """A match receipt was dropped, reused, copied or serialized."""


class RemoteReadFailure(YumeError):
    """Network or decoding failure while reading remote state."""


class RemoteWriteFailure(YumeError):
    """Submission rejected or aborted by the remote side."""

    def __init__(self, message: str, digest: str | None = None) -> None:
        super().__init__(message)
        self.digest = digest


class PartialParseSkipped(YumeError):
    """One malformed record in a bulk traversal; never fatal."""

    def __init__(self, reason: str, record_id: str | None = None) -> None:
        super().__init__(reason if record_id is None else f"{record_id}: {reason}")
        self.reason = reason
        self.record_id = record_id
