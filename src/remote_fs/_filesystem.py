"""RemoteFileSystem: the filesystem served by one SFTP session."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, BinaryIO, NoReturn

from remote_fs._attributes import (
    AttributeView,
    FileAttributes,
    attribute_view,
    mode_from_permissions,
    parse_attribute_key,
)
from remote_fs._capabilities import SFTP_CAPABILITIES, Capability, CapabilitySet
from remote_fs._errors import AlreadyClosed, CapabilityNotSupported, NotFound, PermissionDenied, ProviderMismatch
from remote_fs._listing import DirectoryStream
from remote_fs._path import ROOT, SEPARATOR, RemotePath
from remote_fs._types import AccessMode, OpenOption

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from remote_fs._attributes import BasicFileAttributeView, PosixPermission
    from remote_fs._config import ConnectionIdentity
    from remote_fs._registry import Registry
    from remote_fs._session import Session
    from remote_fs._types import PathFilter

log = logging.getLogger(__name__)

# Permission bits kept untouched when permissions are rewritten (setuid, setgid, sticky).
_SPECIAL_BITS = 0o7000


class RemoteFileSystem:
    """A hierarchical filesystem whose every operation runs on one remote session.

    Instances are created and pooled by :class:`~remote_fs.Registry`; one
    instance exists per :class:`~remote_fs.ConnectionIdentity`. The instance
    is open upon creation. After :meth:`close`, every operation raises
    :class:`~remote_fs.AlreadyClosed`.

    All operations are serialized on the session. Creating a directory moves
    the session's working directory into it, which changes how relative paths
    constructed afterwards resolve.

    :param registry: The registry this filesystem is pooled in.
    :param identity: The connection identity (pool key).
    :param session: The connected session, owned exclusively by this instance.
    """

    def __init__(self, registry: Registry, identity: ConnectionIdentity, session: Session) -> None:
        self._registry = registry
        self._identity = identity
        self._session = session
        self._closed = False

    def __repr__(self) -> str:
        return f"RemoteFileSystem({self._identity.uri!r}, open={self.is_open})"

    # region: lifecycle

    @property
    def identity(self) -> ConnectionIdentity:
        return self._identity

    @property
    def is_open(self) -> bool:
        return not self._closed and self._session.is_open

    def close(self) -> None:
        """Close the channel, then the transport, then leave the registry.

        Every step runs even if an earlier one failed. Closing an already
        closed filesystem does nothing.
        """
        if self._closed:
            return
        self._closed = True
        log.info("Closing remote filesystem %s", self._identity.uri)
        try:
            self._session.close_channel()
        finally:
            try:
                self._session.close_transport()
            finally:
                self._registry.release(self._identity, self)

    def __enter__(self) -> RemoteFileSystem:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise AlreadyClosed("The remote filesystem is closed", filesystem=str(self._identity))

    def _own(self, path: object) -> RemotePath:
        """Check that ``path`` is a :class:`RemotePath` of this filesystem."""
        if not isinstance(path, RemotePath):
            raise ProviderMismatch(
                f"Expected a RemotePath, got {type(path).__name__}", filesystem=str(self._identity)
            )
        if path.file_system is not self:
            raise ProviderMismatch(
                f"Path belongs to {path.file_system.identity.uri}", path=path.raw, filesystem=str(self._identity)
            )
        self._ensure_open()
        return path

    # endregion

    # region: queries

    @property
    def separator(self) -> str:
        return SEPARATOR

    @property
    def is_read_only(self) -> bool:
        return False

    @property
    def capabilities(self) -> CapabilitySet:
        return SFTP_CAPABILITIES

    def supports(self, capability: Capability) -> bool:
        """Check whether this filesystem supports a capability."""
        return self.capabilities.supports(capability)

    def _require(self, capability: Capability, path: RemotePath | None = None) -> None:
        self.capabilities.require(
            capability, filesystem=str(self._identity), path=None if path is None else path.raw
        )

    def _unsupported(self, operation: Capability | str, path: RemotePath | None = None) -> NoReturn:
        name = operation.value if isinstance(operation, Capability) else operation
        raise CapabilityNotSupported(
            f"{name} is not supported by the SFTP filesystem",
            capability=name,
            path=None if path is None else path.raw,
            filesystem=str(self._identity),
        )

    @property
    def root_directories(self) -> list[RemotePath]:
        return [RemotePath(self, ROOT)]

    @property
    def supported_attribute_views(self) -> frozenset[str]:
        return frozenset(view.value for view in AttributeView)

    def working_directory(self) -> str:
        """The session's current remote directory."""
        self._ensure_open()
        return self._session.getcwd()

    def home_directory(self) -> str:
        """The remote directory the session logged in to."""
        self._ensure_open()
        return self._session.home()

    def get_path(self, first: str, *more: str) -> RemotePath:
        """Build a path of this filesystem. See :meth:`RemotePath.of`."""
        self._ensure_open()
        return RemotePath.of(self, first, *more)

    def file_stores(self) -> NoReturn:
        self._unsupported(Capability.FILE_STORE)

    def get_path_matcher(self, syntax_and_pattern: str) -> NoReturn:
        self._unsupported(Capability.GLOB)

    def get_user_principal_lookup_service(self) -> NoReturn:
        self._unsupported(Capability.USER_LOOKUP)

    def new_watch_service(self) -> NoReturn:
        self._unsupported(Capability.WATCH)

    # endregion

    # region: existence checks

    def exists(self, path: RemotePath) -> bool:
        """Check if a file or directory exists. Never raises ``NotFound``."""
        path = self._own(path)
        try:
            self._session.stat(str(path))
        except NotFound:
            return False
        return True

    def is_directory(self, path: RemotePath) -> bool:
        path = self._own(path)
        try:
            return self._session.stat(str(path)).is_directory
        except NotFound:
            return False

    def is_regular_file(self, path: RemotePath) -> bool:
        path = self._own(path)
        try:
            return self._session.stat(str(path)).is_regular_file
        except NotFound:
            return False

    # endregion

    # region: streams and listing

    def new_byte_channel(self, path: RemotePath, options: Iterable[OpenOption]) -> BinaryIO:
        """Create a file and open it for writing.

        ``options`` must include both ``CREATE_NEW`` and ``WRITE``. An
        existing file is overwritten, or appended to if ``APPEND`` is given.

        :raises CapabilityNotSupported: For any other combination of options.
        """
        path = self._own(path)
        requested = frozenset(options)
        if not {OpenOption.CREATE_NEW, OpenOption.WRITE} <= requested:
            names = sorted(o.name for o in requested)
            raise CapabilityNotSupported(
                f"Byte channels are only available for CREATE_NEW + WRITE, got {names}",
                capability="byte_channel",
                path=path.raw,
                filesystem=str(self._identity),
            )
        self._require(Capability.WRITE, path)
        mode = "ab" if OpenOption.APPEND in requested else "wb"
        return self._session.open(str(path), mode)

    def new_input_stream(self, path: RemotePath) -> BinaryIO:
        """Open a file for reading.

        :raises NotFound: If the file does not exist.
        """
        path = self._own(path)
        self._require(Capability.READ, path)
        return self._session.open(str(path), "rb")

    def new_directory_stream(self, directory: RemotePath, path_filter: PathFilter | None = None) -> DirectoryStream:
        """List the children of ``directory`` that satisfy ``path_filter``.

        :raises NotFound: If the directory does not exist.
        """
        directory = self._own(directory)
        self._require(Capability.LIST, directory)
        entries = self._session.listdir(str(directory))
        return DirectoryStream(directory, entries, path_filter)

    # endregion

    # region: create and delete

    def create_directory(self, path: RemotePath) -> None:
        """Create ``path`` and any missing ancestors.

        Succeeds if the directories already exist. The session's working
        directory is left inside the deepest directory.
        """
        path = self._own(path)
        self._require(Capability.CREATE_DIRECTORY, path)
        path._create_directory_chain(self._session)

    def delete(self, path: RemotePath, *, missing_ok: bool = False) -> None:
        """Delete a file or an empty directory.

        :raises NotFound: If the path is missing and ``missing_ok`` is ``False``.
        """
        path = self._own(path)
        self._require(Capability.DELETE, path)
        target = str(path)
        with self._session.lock:
            try:
                stat = self._session.stat(target)
            except NotFound:
                if missing_ok:
                    return
                raise
            if stat.is_directory:
                self._session.rmdir(target)
            else:
                self._session.remove(target)

    # endregion

    # region: attributes

    def read_attributes(self, path: RemotePath) -> FileAttributes:
        """Return a fresh attribute snapshot of ``path``.

        :raises NotFound: If the path does not exist.
        """
        path = self._own(path)
        self._require(Capability.METADATA, path)
        return FileAttributes.from_stat(self._session.stat(str(path)))

    def read_attribute_map(self, path: RemotePath, attributes: str) -> dict[str, object]:
        """Read attributes named as ``"[view:]name,name"`` or ``"[view:]*"``.

        :raises CapabilityNotSupported: For an unknown view or attribute name.
        """
        view, names = parse_attribute_key(attributes)
        wanted = None if names == "*" else [n.strip() for n in names.split(",") if n.strip()]
        return self.read_attributes(path).as_dict(view, wanted)

    def get_attribute_view(
        self, path: RemotePath, view: AttributeView | str = AttributeView.BASIC
    ) -> BasicFileAttributeView:
        """Return the ``basic`` or ``posix`` attribute view of ``path``.

        :raises CapabilityNotSupported: For any other view.
        """
        return attribute_view(self._own(path), view)

    def set_attribute(self, path: RemotePath, attribute: str, value: object) -> None:
        """Write one attribute named ``"[view:]name"`` (view defaults to ``basic``).

        :raises CapabilityNotSupported: For an unknown view or a read-only attribute.
        """
        path = self._own(path)
        view, name = parse_attribute_key(attribute)
        attribute_view(path, view).set_attribute(name, value)

    def _write_metadata(
        self,
        path: RemotePath,
        *,
        permissions: Iterable[PosixPermission] | None = None,
        atime: int | None = None,
        mtime: int | None = None,
    ) -> None:
        path = self._own(path)
        self._require(Capability.SET_METADATA, path)
        target = str(path)
        with self._session.lock:
            mode = None
            if permissions is not None:
                current = self._session.stat(target)
                mode = (current.mode & _SPECIAL_BITS) | mode_from_permissions(permissions)
            self._session.set_stat(target, mode=mode, atime=atime, mtime=mtime)

    def check_access(self, path: RemotePath, *modes: AccessMode) -> None:
        """Check that ``path`` exists and can be accessed in ``modes``.

        Only existence and the read-only flag are checked; the remote user's
        actual rights are not.

        :raises NotFound: If the path does not exist.
        :raises PermissionDenied: If ``WRITE`` is asked of a read-only filesystem.
        """
        self.read_attributes(path)
        for mode in modes:
            if mode is AccessMode.WRITE and self.is_read_only:
                raise PermissionDenied("The filesystem is read-only", path=path.raw, filesystem=str(self._identity))

    # endregion

    # region: unsupported operations

    def copy(self, source: RemotePath, target: RemotePath) -> NoReturn:
        self._unsupported(Capability.COPY, self._own(source))

    def move(self, source: RemotePath, target: RemotePath) -> NoReturn:
        self._unsupported(Capability.MOVE, self._own(source))

    def is_same_file(self, path: RemotePath, other: RemotePath) -> NoReturn:
        self._unsupported("is_same_file", self._own(path))

    def is_hidden(self, path: RemotePath) -> NoReturn:
        self._unsupported("is_hidden", self._own(path))

    def get_file_store(self, path: RemotePath) -> NoReturn:
        self._unsupported(Capability.FILE_STORE, self._own(path))

    # endregion
