"""Attribute projection: remote metadata as basic and POSIX file attributes."""

from __future__ import annotations

import dataclasses
import enum
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, ClassVar, Optional, Union

from remote_fs._errors import CapabilityNotSupported

if TYPE_CHECKING:
    from remote_fs._path import RemotePath
    from remote_fs._session import RemoteStat
    from remote_fs._types import Timestamp

log = logging.getLogger(__name__)


# region: permissions


class PosixPermission(enum.Enum):
    """The nine owner/group/others permission bits."""

    OWNER_READ = 0o400
    OWNER_WRITE = 0o200
    OWNER_EXECUTE = 0o100
    GROUP_READ = 0o040
    GROUP_WRITE = 0o020
    GROUP_EXECUTE = 0o010
    OTHERS_READ = 0o004
    OTHERS_WRITE = 0o002
    OTHERS_EXECUTE = 0o001


# In ``ls -l`` order.
_PERMISSION_ORDER = tuple(PosixPermission)
_PERMISSION_LETTERS = "rwxrwxrwx"

Permissions = Union[Iterable[PosixPermission], str]


def permissions_from_mode(mode: int) -> frozenset[PosixPermission]:
    """Return the permission bits set in ``mode``."""
    return frozenset(p for p in PosixPermission if mode & p.value)


def mode_from_permissions(permissions: Iterable[PosixPermission]) -> int:
    """Return the mode bits of ``permissions`` (no file type, no special bits)."""
    mode = 0
    for permission in permissions:
        mode |= permission.value
    return mode


def permissions_from_string(perms: str) -> frozenset[PosixPermission]:
    """Parse the ``rwxr-x---`` form.

    :raises ValueError: If ``perms`` is not nine ``rwx-`` characters in place.
    """
    if len(perms) != 9:
        raise ValueError(f"Invalid permission string {perms!r}: expected 9 characters")
    result = set()
    for char, letter, permission in zip(perms, _PERMISSION_LETTERS, _PERMISSION_ORDER):
        if char == letter:
            result.add(permission)
        elif char != "-":
            raise ValueError(f"Invalid permission string {perms!r}: unexpected {char!r}")
    return frozenset(result)


def permissions_to_string(permissions: Iterable[PosixPermission]) -> str:
    """Render permissions in the ``rwxr-x---`` form."""
    present = set(permissions)
    return "".join(
        letter if permission in present else "-" for letter, permission in zip(_PERMISSION_LETTERS, _PERMISSION_ORDER)
    )


def _coerce_permissions(value: object) -> frozenset[PosixPermission]:
    if isinstance(value, str):
        return permissions_from_string(value)
    if isinstance(value, Iterable):
        perms = frozenset(value)
        if all(isinstance(p, PosixPermission) for p in perms):
            return perms  # type: ignore[return-value]
    raise TypeError(f"Expected a set of PosixPermission or an 'rwxr-x---' string, got {value!r}")


def _to_epoch(value: object) -> int:
    """Epoch seconds of a timestamp value. SFTP keeps whole seconds only.

    A naive datetime is taken to be UTC, matching the values read back.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    raise TypeError(f"Expected a datetime or epoch seconds, got {value!r}")


def _from_epoch(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


# endregion

# region: snapshot


@dataclasses.dataclass(frozen=True)
class FileAttributes:
    """Immutable snapshot of one remote metadata query.

    SFTP has no creation time, so ``creation_time`` repeats
    ``last_modified_time``. Symbolic links are followed, so
    ``is_symbolic_link`` and ``is_other`` are always ``False``. Timestamps
    are UTC and have whole-second resolution.

    :param size: File size in bytes.
    :param is_regular_file: Whether the path is a regular file.
    :param is_directory: Whether the path is a directory.
    :param last_modified_time: Last modification time.
    :param last_access_time: Last access time.
    :param creation_time: Alias of ``last_modified_time``.
    :param owner: Owner uid.
    :param group: Group gid.
    :param permissions: The nine permission bits that are set.
    """

    size: int
    is_regular_file: bool
    is_directory: bool
    last_modified_time: datetime
    last_access_time: datetime
    creation_time: datetime
    owner: Optional[int] = None
    group: Optional[int] = None
    permissions: frozenset[PosixPermission] = frozenset()
    is_symbolic_link: bool = False
    is_other: bool = False

    @classmethod
    def from_stat(cls, stat: RemoteStat) -> FileAttributes:
        """Project a :class:`~remote_fs._session.RemoteStat` onto file attributes."""
        modified = _from_epoch(stat.mtime if stat.mtime is not None else 0)
        accessed = _from_epoch(stat.atime) if stat.atime is not None else modified
        return cls(
            size=stat.size,
            is_regular_file=stat.is_regular_file,
            is_directory=stat.is_directory,
            last_modified_time=modified,
            last_access_time=accessed,
            creation_time=modified,
            owner=stat.uid,
            group=stat.gid,
            permissions=permissions_from_mode(stat.mode),
        )

    def as_dict(self, view: AttributeView, names: Iterable[str] | None = None) -> dict[str, object]:
        """Return the named attributes of ``view`` (all of them if ``names`` is ``None``).

        :raises CapabilityNotSupported: If a name is not an attribute of ``view``.
        """
        available = view.attribute_names
        selected = available if names is None else tuple(names)
        result: dict[str, object] = {}
        for name in selected:
            if name not in available:
                raise CapabilityNotSupported(
                    f"Attribute '{name}' is not part of the '{view.value}' view",
                    capability=f"{view.value}:{name}",
                )
            result[name] = getattr(self, name)
        return result


# endregion

# region: views

_BASIC_NAMES = (
    "size",
    "last_modified_time",
    "last_access_time",
    "creation_time",
    "is_regular_file",
    "is_directory",
    "is_symbolic_link",
    "is_other",
)
_POSIX_NAMES = (*_BASIC_NAMES, "owner", "group", "permissions")

DEFAULT_VIEW = "basic"


class AttributeView(enum.Enum):
    """Named groupings of file attributes offered for reading and writing."""

    BASIC = "basic"
    POSIX = "posix"

    @property
    def attribute_names(self) -> tuple[str, ...]:
        return _BASIC_NAMES if self is AttributeView.BASIC else _POSIX_NAMES

    @classmethod
    def lookup(cls, view: AttributeView | str) -> AttributeView:
        """Return the view named ``view``.

        :raises CapabilityNotSupported: If no such view is supported.
        """
        if isinstance(view, AttributeView):
            return view
        try:
            return cls(view)
        except ValueError:
            raise CapabilityNotSupported(f"View <{view}> is not supported", capability=f"view:{view}") from None


def parse_attribute_key(key: str) -> tuple[AttributeView, str]:
    """Split ``"<view>:<name>"`` (view defaults to ``basic``).

    :raises CapabilityNotSupported: If the view is not supported.
    """
    view, sep, name = key.partition(":")
    if not sep:
        view, name = DEFAULT_VIEW, key
    return AttributeView.lookup(view), name


class BasicFileAttributeView:
    """Reads and writes the basic attributes of one path.

    Writable: ``last_modified_time``, ``last_access_time``, ``permissions``.

    :param path: The path the view operates on.
    """

    view: ClassVar[AttributeView] = AttributeView.BASIC
    _WRITABLE: ClassVar[frozenset[str]] = frozenset({"last_modified_time", "last_access_time", "permissions"})

    def __init__(self, path: RemotePath) -> None:
        self._path = path

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._path!r})"

    @property
    def name(self) -> str:
        return self.view.value

    @property
    def path(self) -> RemotePath:
        return self._path

    def read_attributes(self) -> FileAttributes:
        """Issue one metadata query and return a fresh snapshot.

        :raises NotFound: If the path does not exist.
        """
        return self._path.file_system.read_attributes(self._path)

    def set_times(
        self,
        last_modified_time: Timestamp | None = None,
        last_access_time: Timestamp | None = None,
        creation_time: Timestamp | None = None,
    ) -> None:
        """Update the given timestamps; ``None`` leaves a timestamp unchanged.

        Naive datetimes are taken to be UTC. ``creation_time`` is ignored: SFTP
        has no such attribute.
        """
        if creation_time is not None:
            log.debug("Ignoring creation_time for %s: not supported over SFTP", self._path)
        if last_modified_time is None and last_access_time is None:
            return
        self._path.file_system._write_metadata(
            self._path,
            mtime=None if last_modified_time is None else _to_epoch(last_modified_time),
            atime=None if last_access_time is None else _to_epoch(last_access_time),
        )

    def _set_permissions(self, permissions: Permissions) -> None:
        self._path.file_system._write_metadata(self._path, permissions=_coerce_permissions(permissions))

    def set_attribute(self, name: str, value: object) -> None:
        """Write one attribute by name.

        :raises CapabilityNotSupported: If ``name`` is not writable through this view.
        """
        if name not in self._WRITABLE:
            raise CapabilityNotSupported(
                f"Attribute '{name}' of view '{self.name}' cannot be set",
                capability=f"{self.name}:{name}",
                path=str(self._path),
            )
        if name == "last_modified_time":
            self.set_times(last_modified_time=value)  # type: ignore[arg-type]
        elif name == "last_access_time":
            self.set_times(last_access_time=value)  # type: ignore[arg-type]
        else:
            self._set_permissions(value)  # type: ignore[arg-type]


class PosixFileAttributeView(BasicFileAttributeView):
    """Basic view plus permissions; ownership is read-only."""

    view: ClassVar[AttributeView] = AttributeView.POSIX

    def set_permissions(self, permissions: Permissions) -> None:
        self._set_permissions(permissions)

    def set_owner(self, owner: int) -> None:
        raise CapabilityNotSupported(
            "Changing the owner is not supported", capability="posix:owner", path=str(self._path)
        )

    def set_group(self, group: int) -> None:
        raise CapabilityNotSupported(
            "Changing the group is not supported", capability="posix:group", path=str(self._path)
        )


_VIEW_CLASSES: dict[AttributeView, type[BasicFileAttributeView]] = {
    AttributeView.BASIC: BasicFileAttributeView,
    AttributeView.POSIX: PosixFileAttributeView,
}


def attribute_view(path: RemotePath, view: AttributeView | str) -> BasicFileAttributeView:
    """Build the view named ``view`` for ``path``.

    :raises CapabilityNotSupported: If the view is not supported.
    """
    return _VIEW_CLASSES[AttributeView.lookup(view)](path)


# endregion
