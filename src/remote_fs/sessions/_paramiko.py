"""SFTP session using pure paramiko."""

from __future__ import annotations

import contextlib
import errno
import logging
import os
import re
from contextlib import contextmanager
from enum import Enum
from io import StringIO
from typing import TYPE_CHECKING, Any, BinaryIO

from remote_fs._errors import (
    AlreadyClosed,
    NotFound,
    PermissionDenied,
    RemoteFSError,
    RemoteProtocolError,
)
from remote_fs._session import DirEntry, RemoteStat, Session

if TYPE_CHECKING:
    from collections.abc import Iterator

    from remote_fs._config import ConnectionIdentity

log = logging.getLogger(__name__)


# region: host key policy


class HostKeyPolicy(Enum):
    """Controls how unknown remote host keys are handled.

    :cvar STRICT: Reject unknown hosts (production default).
    :cvar TRUST_ON_FIRST_USE: Save on first connect, verify after.
    :cvar AUTO_ADD: Accept any key (dev/testing ONLY).
    """

    STRICT = "strict"
    TRUST_ON_FIRST_USE = "tofu"
    AUTO_ADD = "auto"


_HOST_KEYS_ENV = "SFTP_KNOWN_HOST_KEYS"


def _load_host_keys_from_string(ssh: Any, keys_content: str) -> None:  # pragma: no cover
    """Parse a known_hosts-formatted string into an SSHClient's host keys."""
    import tempfile

    with tempfile.NamedTemporaryFile(mode="w", suffix=".known_hosts", delete=True) as tmp:
        tmp.write(keys_content)
        tmp.flush()
        ssh.load_host_keys(tmp.name)


# endregion

# region: private keys

_NON_BASE64_PATTERN = re.compile(r"[^A-Za-z\d+/=]")
_PEM_SEPARATOR = "-----"


def _sanitize_pem(pem_content: str) -> str:
    """Restore the newlines of a PEM body that was flattened onto one line.

    Secret stores often hand PEM keys back with the line breaks replaced by
    blanks. The body must contain exactly one non-base64 character, which is
    taken to be the original line separator.
    """
    parts = pem_content.split(_PEM_SEPARATOR)
    if len(parts) != 5:
        raise ValueError("Invalid PEM structure (expected 5 parts).")

    body = parts[2]
    separators = set(_NON_BASE64_PATTERN.findall(body))
    if len(separators) != 1:
        raise ValueError(f"Unexpected PEM characters: {sorted(separators)}")

    parts[2] = body.replace(separators.pop(), "\n")
    return _PEM_SEPARATOR.join(parts)


def load_private_key(source: str, *, from_file: bool = False) -> Any:  # pragma: no cover
    """Load an RSA private key for key-based authentication.

    :param source: A file path (with ``from_file=True``) or a PEM-encoded string.
    :param from_file: Treat ``source`` as a file path.
    :returns: A ``paramiko.RSAKey`` to pass as the ``pkey`` session option.
    """
    import paramiko

    if from_file:
        return paramiko.RSAKey.from_private_key_file(source)
    with StringIO(_sanitize_pem(source)) as buf:
        return paramiko.RSAKey.from_private_key(buf)


# endregion


def _to_remote_stat(attrs: Any) -> RemoteStat:
    """Convert paramiko ``SFTPAttributes`` to a :class:`RemoteStat`."""
    return RemoteStat(
        size=int(attrs.st_size or 0),
        mode=int(attrs.st_mode or 0),
        mtime=attrs.st_mtime,
        atime=attrs.st_atime,
        uid=attrs.st_uid,
        gid=attrs.st_gid,
    )


class ParamikoSession(Session):
    """SFTP session over one paramiko ``SSHClient`` and one ``SFTPClient`` channel.

    Construction makes no network calls; :meth:`connect` does. The session
    never reconnects on its own: once closed, or once the channel drops,
    every call raises.

    :param identity: User, host, port and password to connect with.
    :param pkey: paramiko.PKey instance for key-based auth.
    :param host_key_policy: Host key verification policy (enum or its value).
    :param known_host_keys: Known hosts string (code-level override).
    :param host_keys_path: Path to known_hosts file (default: ``~/.ssh/known_hosts``).
    :param config: Optional config dict (may contain ``known_host_keys``).
    :param timeout: SSH connection timeout in seconds.
    :param connect_attempts: Total attempts at establishing the SSH connection.
    :param connect_kwargs: Extra kwargs passed to ``SSHClient.connect()``.
    """

    def __init__(
        self,
        identity: ConnectionIdentity,
        *,
        pkey: Any = None,
        host_key_policy: HostKeyPolicy | str = HostKeyPolicy.STRICT,
        known_host_keys: str | None = None,
        host_keys_path: str | None = None,
        config: dict[str, Any] | None = None,
        timeout: int = 10,
        connect_attempts: int = 3,
        connect_kwargs: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(identity)
        if connect_attempts < 1:
            raise ValueError("connect_attempts must be at least 1")
        self._pkey = pkey
        self._host_key_policy = HostKeyPolicy(host_key_policy)
        self._host_keys_path = host_keys_path
        self._timeout = timeout
        self._connect_attempts = connect_attempts
        self._connect_kwargs = connect_kwargs or {}
        self._resolved_host_keys = self._resolve_host_keys(known_host_keys, config)

        self._ssh_client: Any = None
        self._sftp_client: Any = None
        self._home: str | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"ParamikoSession({self.identity.uri!r}, open={self.is_open})"

    # region: connection

    @property
    def is_open(self) -> bool:
        if self._sftp_client is None:
            return False
        channel = self._sftp_client.get_channel()
        return channel is not None and not channel.closed

    @property
    def _sftp(self) -> Any:
        if self._sftp_client is None:
            raise AlreadyClosed("The SFTP session is not open", filesystem=str(self.identity))
        return self._sftp_client

    def connect(self) -> None:
        """Establish SSH + SFTP connection with tenacity retry."""
        import paramiko
        from tenacity import (
            before_sleep_log,
            retry,
            retry_if_exception_type,
            retry_if_not_exception_type,
            stop_after_attempt,
            wait_exponential,
        )

        with self._lock:
            if self._closed:
                raise AlreadyClosed("The SFTP session was closed", filesystem=str(self.identity))
            if self._sftp_client is not None:
                return

            ssh = self._create_ssh_client()

            @retry(
                retry=(
                    retry_if_exception_type((paramiko.SSHException, OSError, EOFError))
                    & retry_if_not_exception_type(paramiko.AuthenticationException)
                ),
                stop=stop_after_attempt(self._connect_attempts),
                wait=wait_exponential(multiplier=1, min=2, max=10),
                before_sleep=before_sleep_log(log, logging.WARNING),  # type: ignore[arg-type,unused-ignore]
                reraise=True,
            )
            def _do_connect() -> None:
                log.info("Connecting to %s:%d as %s", self.identity.host, self.identity.port, self.identity.user)
                ssh.connect(
                    hostname=self.identity.host,
                    port=self.identity.port,
                    username=self.identity.user,
                    password=self.identity.password,
                    pkey=self._pkey,
                    timeout=self._timeout,
                    banner_timeout=self._timeout,
                    auth_timeout=self._timeout,
                    channel_timeout=self._timeout,
                    **self._connect_kwargs,
                )

            try:
                _do_connect()
                sftp = ssh.open_sftp()
                # Before any chdir, "." canonicalizes to the login directory.
                self._home = sftp.normalize(".")
            except paramiko.AuthenticationException as exc:
                ssh.close()
                raise PermissionDenied(f"Authentication failed: {exc}", filesystem=str(self.identity)) from None
            except (paramiko.SSHException, OSError, EOFError) as exc:
                ssh.close()
                raise RemoteProtocolError(
                    f"Unable to connect to {self.identity.uri}: {exc}", filesystem=str(self.identity)
                ) from None

            self._ssh_client = ssh
            self._sftp_client = sftp
            log.info("SFTP connection established (home=%s).", self._home)

    def _create_ssh_client(self) -> Any:
        """Create and configure an SSHClient with host key policy."""
        import paramiko

        ssh = paramiko.SSHClient()

        if self._resolved_host_keys:  # pragma: no cover -- tests use AUTO_ADD
            _load_host_keys_from_string(ssh, self._resolved_host_keys)
        elif self._host_key_policy in (  # pragma: no cover -- tests use AUTO_ADD
            HostKeyPolicy.STRICT,
            HostKeyPolicy.TRUST_ON_FIRST_USE,
        ):
            keys_path = self._host_keys_path or os.path.expanduser("~/.ssh/known_hosts")
            if os.path.isfile(keys_path):
                ssh.load_host_keys(keys_path)

        if self._host_key_policy == HostKeyPolicy.TRUST_ON_FIRST_USE:  # pragma: no cover
            ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        elif self._host_key_policy == HostKeyPolicy.AUTO_ADD:
            log.warning("AUTO_ADD host key policy -- NOT safe for production.")
            ssh.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        return ssh

    def _resolve_host_keys(self, direct: str | None, config: dict[str, Any] | None) -> str | None:
        """Resolve known host keys: code > config > env > file fallback."""
        if direct:
            return direct
        if config and (val := config.get("known_host_keys")):
            return str(val)
        if val_env := os.environ.get(_HOST_KEYS_ENV):  # pragma: no cover
            return val_env
        return None

    def close_channel(self) -> None:
        with self._lock:
            self._closed = True
            if self._sftp_client is not None:
                with contextlib.suppress(Exception):
                    self._sftp_client.close()
                self._sftp_client = None

    def close_transport(self) -> None:
        with self._lock:
            self._closed = True
            if self._ssh_client is not None:
                with contextlib.suppress(Exception):
                    self._ssh_client.close()
                self._ssh_client = None

    # endregion

    # region: error mapping

    @contextmanager
    def _call(self, path: str = "") -> Iterator[Any]:
        """Hold the session lock and map paramiko/OS exceptions to remote_fs errors."""
        import paramiko

        where = str(self.identity)
        with self._lock:
            sftp = self._sftp
            try:
                yield sftp
            except RemoteFSError:
                raise
            except FileNotFoundError:
                raise NotFound(f"Not found: {path}", path=path, filesystem=where) from None
            except OSError as exc:
                code = getattr(exc, "errno", None)
                if code == errno.ENOENT:  # pragma: no cover -- FileNotFoundError covers it
                    raise NotFound(f"Not found: {path}", path=path, filesystem=where) from None
                if code == errno.EACCES:  # pragma: no cover -- requires server-side perm setup
                    raise PermissionDenied(f"Permission denied: {path}", path=path, filesystem=where) from None
                raise RemoteProtocolError(str(exc), path=path, filesystem=where) from None
            except (paramiko.SFTPError, paramiko.SSHException, EOFError) as exc:
                raise RemoteProtocolError(str(exc) or type(exc).__name__, path=path, filesystem=where) from None

    # endregion

    # region: remote operations

    def chdir(self, path: str) -> None:
        with self._call(path) as sftp:
            sftp.chdir(path)

    def mkdir(self, path: str) -> None:
        with self._call(path) as sftp:
            sftp.mkdir(path)

    def remove(self, path: str) -> None:
        with self._call(path) as sftp:
            sftp.remove(path)

    def rmdir(self, path: str) -> None:
        with self._call(path) as sftp:
            sftp.rmdir(path)

    def stat(self, path: str) -> RemoteStat:
        with self._call(path) as sftp:
            return _to_remote_stat(sftp.stat(path))

    def lstat(self, path: str) -> RemoteStat:
        with self._call(path) as sftp:
            return _to_remote_stat(sftp.lstat(path))

    def set_stat(
        self,
        path: str,
        *,
        mode: int | None = None,
        atime: int | None = None,
        mtime: int | None = None,
    ) -> None:
        with self._call(path) as sftp:
            if mode is not None:
                sftp.chmod(path, mode)
            if atime is None and mtime is None:
                return
            # SFTP writes both times at once; keep the one not being set.
            if atime is None or mtime is None:
                current = sftp.stat(path)
                if mtime is None:
                    mtime = current.st_mtime
                if atime is None:
                    atime = current.st_atime if current.st_atime is not None else mtime
            sftp.utime(path, (atime, mtime))

    def listdir(self, path: str) -> list[DirEntry]:
        with self._call(path) as sftp:
            return [DirEntry(attrs.filename, _to_remote_stat(attrs)) for attrs in sftp.listdir_attr(path)]

    def getcwd(self) -> str:
        with self._call() as sftp:
            cwd = sftp.getcwd()
            return cwd if cwd is not None else str(self._home)

    def home(self) -> str:
        with self._call():
            return str(self._home)

    def open(self, path: str, mode: str = "rb") -> BinaryIO:
        with self._call(path) as sftp:
            handle = sftp.open(path, mode)
        return _SessionFile(self, path, handle)  # type: ignore[return-value]

    # endregion


class _SessionFile:
    """A remote file handle whose I/O is locked and error-mapped like any session call.

    :param session: The session the handle was opened on.
    :param path: Remote path, for error context.
    :param handle: The paramiko ``SFTPFile``.
    """

    def __init__(self, session: ParamikoSession, path: str, handle: Any) -> None:
        self._session = session
        self._path = path
        self._handle = handle
        self._closed = False

    def __repr__(self) -> str:
        return f"_SessionFile({self._path!r}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise AlreadyClosed("The remote file is closed", path=self._path, filesystem=str(self._session.identity))

    def read(self, size: int = -1) -> bytes:
        self._check_open()
        with self._session._call(self._path):
            return self._handle.read(size)  # type: ignore[no-any-return]

    def write(self, data: bytes) -> int:
        self._check_open()
        with self._session._call(self._path):
            self._handle.write(data)
        return len(data)

    def seek(self, offset: int, whence: int = 0) -> int:
        self._check_open()
        with self._session._call(self._path):
            self._handle.seek(offset, whence)
            return self._handle.tell()  # type: ignore[no-any-return]

    def tell(self) -> int:
        self._check_open()
        with self._session._call(self._path):
            return self._handle.tell()  # type: ignore[no-any-return]

    def flush(self) -> None:
        self._check_open()
        with self._session._call(self._path):
            self._handle.flush()

    def close(self) -> None:
        """Close the handle. Closing twice, or after the session closed, does nothing."""
        if self._closed:
            return
        self._closed = True
        if not self._session.is_open:
            return
        with self._session._call(self._path):
            self._handle.close()

    def __enter__(self) -> _SessionFile:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
