"""Normalized error hierarchy for remote_fs."""

from __future__ import annotations

from typing import Optional


class RemoteFSError(Exception):
    """Base class for all remote_fs errors.

    :param message: Human-readable error description.
    :param path: The remote path involved in the error, if any.
    :param filesystem: The connection the error occurred on (``user@host:port``), if any.
    """

    def __init__(self, message: str = "", *, path: Optional[str] = None, filesystem: Optional[str] = None) -> None:
        self.path = path
        self.filesystem = filesystem
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.path is not None:
            parts.append(f"path={self.path!r}")
        if self.filesystem is not None:
            parts.append(f"filesystem={self.filesystem!r}")
        return " | ".join(parts) if len(parts) > 1 else parts[0]

    def __repr__(self) -> str:
        cls = type(self).__name__
        args = [repr(self.args[0] if self.args else "")]
        if self.path is not None:
            args.append(f"path={self.path!r}")
        if self.filesystem is not None:
            args.append(f"filesystem={self.filesystem!r}")
        return f"{cls}({', '.join(args)})"


class NotFound(RemoteFSError):
    """Raised when a remote file or directory does not exist."""


class AlreadyClosed(RemoteFSError):
    """Raised when a closed filesystem, session or stream is used."""


class ConfigurationError(RemoteFSError, ValueError):
    """Raised for an invalid URI, missing credentials, or bad filesystem options."""


class ProviderMismatch(RemoteFSError, TypeError):
    """Raised when a path that does not belong to this filesystem is passed in."""


class RemoteProtocolError(RemoteFSError):
    """Raised when the SSH transport or the SFTP protocol reports a failure."""


class PermissionDenied(RemoteProtocolError):
    """Raised when the remote server denies access."""


class CapabilityNotSupported(RemoteFSError):
    """Raised when an operation requires an unsupported capability.

    :param capability: The name of the unsupported capability or operation.
    """

    def __init__(
        self,
        message: str = "",
        *,
        path: Optional[str] = None,
        filesystem: Optional[str] = None,
        capability: str = "",
    ) -> None:
        self.capability = capability
        super().__init__(message, path=path, filesystem=filesystem)

    def __str__(self) -> str:
        base = super().__str__()
        if self.capability:
            if base:
                return f"{base} | capability={self.capability!r}"
            return f"capability={self.capability!r}"
        return base

    def __repr__(self) -> str:
        base = super().__repr__()
        if self.capability:
            return f"{base[:-1]}, capability={self.capability!r})"
        return base
