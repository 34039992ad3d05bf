"""Error taxonomy for linguasync.

Every fatal condition raised by the sync engine derives from ``SyncError`` so the
CLI can map it to a non-zero exit status. Only ``LocalIOError`` is routinely
downgraded to a warning (a missing local push file skips that file set).
"""

from __future__ import annotations

from typing import Optional


class SyncError(Exception):
    """Base class for all linguasync errors."""


class ConfigurationError(SyncError):
    """Invalid or missing configuration, detected before any remote call."""


class RemoteProtocolError(SyncError):
    """The remote service returned a failure or a response we cannot use.

    The service-provided ``code`` and ``message`` are kept verbatim.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        remote_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.remote_message = remote_message
        self.status_code = status_code


class ConsistencyError(SyncError):
    """A just-created node cannot be found after re-fetch, or has the wrong kind."""


class LocalIOError(SyncError):
    """A local file expected by the engine is missing or unreadable."""


class BranchNotFoundError(SyncError):
    """The current branch is unknown remotely and may not be created here."""
