"""Session abstract base class: the remote file-transfer contract."""

from __future__ import annotations

import abc
import dataclasses
import stat as stat_module
import threading
from typing import TYPE_CHECKING, BinaryIO, Optional

if TYPE_CHECKING:
    from remote_fs._config import ConnectionIdentity


@dataclasses.dataclass(frozen=True)
class RemoteStat:
    """Remote metadata as reported by a session.

    :param size: Size in bytes.
    :param mode: Mode bits (type and permissions).
    :param mtime: Last modification time, epoch seconds.
    :param atime: Last access time, epoch seconds.
    :param uid: Owner id.
    :param gid: Group id.
    """

    size: int = 0
    mode: int = 0
    mtime: Optional[int] = None
    atime: Optional[int] = None
    uid: Optional[int] = None
    gid: Optional[int] = None

    @property
    def is_directory(self) -> bool:
        return stat_module.S_ISDIR(self.mode)

    @property
    def is_regular_file(self) -> bool:
        return stat_module.S_ISREG(self.mode)


@dataclasses.dataclass(frozen=True)
class DirEntry:
    """One child of a remote directory listing."""

    name: str
    stat: RemoteStat


class Session(abc.ABC):
    """One authenticated connection plus its single file-transfer channel.

    The remote side keeps one current working directory per session, and
    relative paths passed to any method resolve against it. Every call must
    be made while holding :attr:`lock`; implementations acquire it themselves,
    callers hold it across sequences that depend on the working directory.
    Session-native exceptions must never leak; they must be mapped to
    ``remote_fs`` errors.

    :param identity: The connection identity this session authenticates as.
    """

    def __init__(self, identity: ConnectionIdentity) -> None:
        self.identity = identity
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """The single permit guarding this session's working directory."""
        return self._lock

    @property
    @abc.abstractmethod
    def is_open(self) -> bool:
        """``True`` while the file-transfer channel is connected."""

    @abc.abstractmethod
    def connect(self) -> None:
        """Connect, authenticate and open the file-transfer channel.

        :raises RemoteProtocolError: If the server cannot be reached or rejects the login.
        """

    @abc.abstractmethod
    def close_channel(self) -> None:
        """Close the file-transfer channel."""

    @abc.abstractmethod
    def close_transport(self) -> None:
        """Close the underlying transport session."""

    @abc.abstractmethod
    def chdir(self, path: str) -> None:
        """Change the remote working directory.

        :raises NotFound: If ``path`` does not exist.
        """

    @abc.abstractmethod
    def mkdir(self, path: str) -> None:
        """Create one remote directory."""

    @abc.abstractmethod
    def remove(self, path: str) -> None:
        """Remove a remote file."""

    @abc.abstractmethod
    def rmdir(self, path: str) -> None:
        """Remove an empty remote directory."""

    @abc.abstractmethod
    def stat(self, path: str) -> RemoteStat:
        """Return metadata of ``path``, following links.

        :raises NotFound: If ``path`` does not exist.
        """

    @abc.abstractmethod
    def lstat(self, path: str) -> RemoteStat:
        """Return metadata of ``path`` without following links."""

    @abc.abstractmethod
    def set_stat(
        self,
        path: str,
        *,
        mode: int | None = None,
        atime: int | None = None,
        mtime: int | None = None,
    ) -> None:
        """Write the given metadata fields; ``None`` fields are left unchanged."""

    @abc.abstractmethod
    def listdir(self, path: str) -> list[DirEntry]:
        """List the immediate children of a directory, without ``.`` and ``..``."""

    @abc.abstractmethod
    def getcwd(self) -> str:
        """Return the current remote working directory."""

    @abc.abstractmethod
    def home(self) -> str:
        """Return the directory the server put the session in at login."""

    @abc.abstractmethod
    def open(self, path: str, mode: str = "rb") -> BinaryIO:
        """Open a remote file and return a binary stream."""
