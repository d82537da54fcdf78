"""RemotePath: a slash-delimited path value bound to one remote filesystem."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NoReturn

from remote_fs._errors import CapabilityNotSupported, NotFound

if TYPE_CHECKING:
    from remote_fs._filesystem import RemoteFileSystem
    from remote_fs._session import Session

log = logging.getLogger(__name__)

SEPARATOR = "/"
ROOT = "/"


class RemotePath:
    """An immutable path within a :class:`~remote_fs.RemoteFileSystem`.

    A path is absolute when its literal form starts with ``/``. A relative
    path is resolved once, at construction, against the filesystem's remote
    working directory at that moment; its string form never changes after
    that, even if the session later changes directory.

    Only a minimal subset of path algebra is offered. Everything else raises
    :class:`~remote_fs.CapabilityNotSupported`.

    :param file_system: The filesystem the path belongs to.
    :param raw: The literal path string.
    """

    __slots__ = ("_fs", "_raw", "_absolute", "_parts", "_base")

    def __init__(self, file_system: RemoteFileSystem, raw: str) -> None:
        absolute = raw.startswith(SEPARATOR)
        base = None if absolute else file_system.working_directory()
        self._init(file_system, raw, base)

    def _init(self, file_system: RemoteFileSystem, raw: str, base: str | None) -> None:
        object.__setattr__(self, "_fs", file_system)
        object.__setattr__(self, "_raw", raw)
        object.__setattr__(self, "_absolute", raw.startswith(SEPARATOR))
        object.__setattr__(self, "_parts", tuple(s for s in raw.split(SEPARATOR) if s))
        object.__setattr__(self, "_base", base)

    @classmethod
    def of(cls, file_system: RemoteFileSystem, first: str, *more: str) -> RemotePath:
        """Join ``first`` and the non-empty ``more`` segments with ``/``.

        Example: ``RemotePath.of(fs, "/data", "", "in")`` is ``/data/in``.
        """
        path = first
        for segment in more:
            if segment:
                path = f"{path}{SEPARATOR}{segment}" if path else segment
        return cls(file_system, path)

    def _derive(self, raw: str) -> RemotePath:
        """A sibling path value sharing this path's resolution base."""
        if raw.startswith(SEPARATOR) or self._base is None:
            return RemotePath(self._fs, raw)
        p = object.__new__(RemotePath)
        p._init(self._fs, raw, self._base)
        return p

    # region: supported operations

    @property
    def file_system(self) -> RemoteFileSystem:
        """The filesystem this path belongs to."""
        return self._fs

    @property
    def raw(self) -> str:
        """The literal form the path was constructed from."""
        return self._raw

    @property
    def parts(self) -> tuple[str, ...]:
        """Tuple of the non-empty segments of the literal form."""
        return self._parts

    @property
    def name(self) -> str:
        """Final segment, or an empty string for ``/`` and the empty path."""
        return self._parts[-1] if self._parts else ""

    def is_absolute(self) -> bool:
        return self._absolute

    def get_parent(self) -> RemotePath:
        """Return every segment followed by ``/``, as a relative path.

        This is not the usual parent: ``/a/b`` gives ``a/b/``. Callers relying
        on it only ever use it on single-segment paths.
        """
        return self._derive("".join(f"{part}{SEPARATOR}" for part in self._parts))

    def to_absolute_path(self) -> RemotePath:
        """Return ``self`` if absolute, else the path resolved against the remote home directory.

        The home directory is asked for on every call; nothing is memoized.
        """
        if self._absolute:
            return self
        home = self._fs.home_directory()
        if not self._raw:
            return RemotePath(self._fs, home)
        return RemotePath(self._fs, f"{home.rstrip(SEPARATOR)}{SEPARATOR}{self._raw}")

    def _create_directory_chain(self, session: Session) -> None:
        """Enter each segment in turn, creating the ones that are missing.

        Leaves the session's working directory inside the last segment.
        """
        with session.lock:
            session.chdir(ROOT if self._absolute else str(self._base))
            for segment in self._parts:
                try:
                    session.chdir(segment)
                except NotFound:
                    log.debug("Creating remote directory %r in %s", segment, session.getcwd())
                    session.mkdir(segment)
                    session.chdir(segment)

    # endregion

    # region: unsupported operations

    def _unsupported(self, operation: str) -> NoReturn:
        raise CapabilityNotSupported(
            f"RemotePath does not support {operation}()",
            capability=operation,
            path=self._raw,
            filesystem=str(self._fs.identity),
        )

    @property
    def root(self) -> RemotePath:
        self._unsupported("root")

    @property
    def name_count(self) -> int:
        self._unsupported("name_count")

    def get_name(self, index: int) -> RemotePath:
        self._unsupported("get_name")

    def subpath(self, begin: int, end: int) -> RemotePath:
        self._unsupported("subpath")

    def starts_with(self, other: RemotePath | str) -> bool:
        self._unsupported("starts_with")

    def ends_with(self, other: RemotePath | str) -> bool:
        self._unsupported("ends_with")

    def normalize(self) -> RemotePath:
        self._unsupported("normalize")

    def resolve(self, other: RemotePath | str) -> RemotePath:
        self._unsupported("resolve")

    def resolve_sibling(self, other: RemotePath | str) -> RemotePath:
        self._unsupported("resolve_sibling")

    def relativize(self, other: RemotePath) -> RemotePath:
        self._unsupported("relativize")

    def to_real_path(self) -> RemotePath:
        self._unsupported("to_real_path")

    def to_uri(self) -> str:
        self._unsupported("to_uri")

    def to_file(self) -> object:
        self._unsupported("to_file")

    def register(self, watcher: object, *events: object) -> object:
        self._unsupported("register")

    def __iter__(self) -> NoReturn:
        self._unsupported("iter")

    def __lt__(self, other: object) -> bool:
        self._unsupported("compare")

    def __le__(self, other: object) -> bool:
        self._unsupported("compare")

    def __gt__(self, other: object) -> bool:
        self._unsupported("compare")

    def __ge__(self, other: object) -> bool:
        self._unsupported("compare")

    # endregion

    def __str__(self) -> str:
        if self._absolute:
            return self._raw
        base = str(self._base)
        if not self._raw.strip():
            return base
        return f"{base.rstrip(SEPARATOR)}{SEPARATOR}{self._raw}"

    def __repr__(self) -> str:
        return f"RemotePath({self._raw!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RemotePath):
            return self._fs is other._fs and str(self) == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(str(self))

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError(f"RemotePath is immutable: cannot set '{name}'")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"RemotePath is immutable: cannot delete '{name}'")
