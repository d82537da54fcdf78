"""DirectoryStream: a filtered, single-pass listing of one remote directory."""

from __future__ import annotations

from typing import TYPE_CHECKING

from remote_fs._errors import AlreadyClosed, RemoteFSError
from remote_fs._path import SEPARATOR, RemotePath

if TYPE_CHECKING:
    from collections.abc import Iterator
    from types import TracebackType

    from remote_fs._session import DirEntry
    from remote_fs._types import PathFilter


def _accept_all(path: RemotePath) -> bool:
    return True


class DirectoryStream:
    """The immediate children of a directory, as :class:`RemotePath` values.

    Opening the stream issues exactly one remote listing request. Children
    are then built and filtered lazily, in the order the server returned
    them. The stream can be iterated once; open a new stream to list again.

    :param directory: The directory to list.
    :param entries: The remote listing of ``directory``.
    :param path_filter: Predicate a child must satisfy to be yielded.
    """

    def __init__(
        self,
        directory: RemotePath,
        entries: list[DirEntry],
        path_filter: PathFilter | None = None,
    ) -> None:
        self._directory = directory
        self._entries: list[DirEntry] | None = entries
        self._filter = path_filter or _accept_all
        self._iterated = False

    def __repr__(self) -> str:
        return f"DirectoryStream({self._directory!r}, closed={self.closed})"

    @property
    def closed(self) -> bool:
        return self._entries is None

    def __iter__(self) -> Iterator[RemotePath]:
        if self._entries is None:
            raise AlreadyClosed("Directory stream is closed", path=str(self._directory))
        if self._iterated:
            raise RemoteFSError("Directory stream can only be iterated once", path=str(self._directory))
        self._iterated = True
        return self._children()

    def _children(self) -> Iterator[RemotePath]:
        fs = self._directory.file_system
        prefix = str(self._directory).rstrip(SEPARATOR)
        index = 0
        while self._entries is not None and index < len(self._entries):
            entry = self._entries[index]
            index += 1
            child = RemotePath(fs, f"{prefix}{SEPARATOR}{entry.name}")
            if self._filter(child):
                yield child

    def close(self) -> None:
        """Release the retained listing. Closing twice is harmless."""
        self._entries = None

    def __enter__(self) -> DirectoryStream:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
