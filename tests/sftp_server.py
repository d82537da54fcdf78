"""In-process SFTP server for testing, backed by a local temp directory.

Uses paramiko's ServerInterface + SFTPServerInterface to run a real SFTP server
in a background thread. Accepts all authentication for test convenience. The
served tree has a login directory (``HOME``) that relative paths resolve
against, as on a real server.
"""

from __future__ import annotations

import contextlib
import os
import posixpath
import socket
import threading

import paramiko
from paramiko import (
    AUTH_SUCCESSFUL,
    OPEN_SUCCEEDED,
    RSAKey,
    ServerInterface,
    SFTPAttributes,
    SFTPHandle,
    SFTPServer,
    SFTPServerInterface,
    Transport,
)

HOME = "/home/testuser"

# ---------------------------------------------------------------------------
# Stub SSH server -- accepts all auth
# ---------------------------------------------------------------------------


class StubServer(ServerInterface):
    """Minimal SSH server that accepts all authentication."""

    def check_auth_password(self, username: str, password: str) -> int:
        return AUTH_SUCCESSFUL

    def check_auth_publickey(self, username: str, key: paramiko.PKey) -> int:
        return AUTH_SUCCESSFUL

    def get_allowed_auths(self, username: str) -> str:
        return "password,publickey"

    def check_channel_request(self, kind: str, chanid: int) -> int:
        return OPEN_SUCCEEDED


# ---------------------------------------------------------------------------
# SFTP handle -- wraps a real file descriptor
# ---------------------------------------------------------------------------


class StubSFTPHandle(SFTPHandle):
    """SFTP handle that wraps a real file on the local filesystem."""

    def stat(self) -> SFTPAttributes:
        try:
            return SFTPAttributes.from_stat(os.fstat(self.readfile.fileno()))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[return-value]

    def chattr(self, attr: SFTPAttributes) -> int:
        try:
            SFTPServer.set_file_attr(self.filename, attr)
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# SFTP server interface -- maps operations to local filesystem
# ---------------------------------------------------------------------------


class StubSFTPServer(SFTPServerInterface):
    """SFTP server backed by a local directory tree."""

    ROOT: str = ""  # set by start_sftp_server before accepting connections

    def _remote(self, path: str) -> str:
        """Absolute remote form of ``path``; relative paths start at HOME."""
        if not path.startswith("/"):
            path = f"{HOME}/{path}"
        return posixpath.normpath(path)

    def _realpath(self, path: str) -> str:
        """Map an SFTP path to the local filesystem."""
        return os.path.join(self.ROOT, self._remote(path).lstrip("/"))

    def canonicalize(self, path: str) -> str:
        return self._remote(path)

    def list_folder(self, path: str) -> list[SFTPAttributes] | int:
        realpath = self._realpath(path)
        try:
            entries = []
            for name in os.listdir(realpath):
                attr = SFTPAttributes.from_stat(os.stat(os.path.join(realpath, name)))
                attr.filename = name
                entries.append(attr)
            return entries
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def stat(self, path: str) -> SFTPAttributes | int:
        try:
            return SFTPAttributes.from_stat(os.stat(self._realpath(path)))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def lstat(self, path: str) -> SFTPAttributes | int:
        try:
            return SFTPAttributes.from_stat(os.lstat(self._realpath(path)))
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def open(self, path: str, flags: int, attr: SFTPAttributes) -> SFTPHandle | int:
        realpath = self._realpath(path)
        try:
            fd = os.open(realpath, flags, 0o644)
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

        if (flags & os.O_CREAT) and attr is not None:
            attr._flags &= ~attr.FLAG_PERMISSIONS  # type: ignore[attr-defined]

        if flags & os.O_WRONLY:
            mode = "ab" if flags & os.O_APPEND else "wb"
        elif flags & os.O_RDWR:
            mode = "rb+"
        else:
            mode = "rb"
        fobj = os.fdopen(fd, mode)
        handle = StubSFTPHandle(flags)
        handle.filename = realpath
        handle.readfile = fobj  # type: ignore[assignment]
        handle.writefile = fobj  # type: ignore[assignment]
        return handle

    def remove(self, path: str) -> int:
        try:
            os.remove(self._realpath(path))
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def mkdir(self, path: str, attr: SFTPAttributes) -> int:
        try:
            os.mkdir(self._realpath(path))
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def rmdir(self, path: str) -> int:
        try:
            os.rmdir(self._realpath(path))
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def chattr(self, path: str, attr: SFTPAttributes) -> int:
        try:
            SFTPServer.set_file_attr(self._realpath(path), attr)
            return paramiko.SFTP_OK
        except OSError as exc:
            return SFTPServer.convert_errno(exc.errno)  # type: ignore[no-any-return]

    def symlink(self, target_path: str, path: str) -> int:
        return paramiko.SFTP_OP_UNSUPPORTED


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def _accept_connections(
    server_socket: socket.socket,
    host_key: RSAKey,
    root: str,
    stop_event: threading.Event,
) -> None:
    """Accept SSH connections in a loop until stop_event is set."""
    server_socket.settimeout(0.5)
    StubSFTPServer.ROOT = root

    while not stop_event.is_set():
        try:
            conn, _addr = server_socket.accept()
        except TimeoutError:
            continue
        except OSError:
            break

        transport = Transport(conn)
        transport.add_server_key(host_key)
        transport.set_subsystem_handler("sftp", SFTPServer, StubSFTPServer)

        try:
            transport.start_server(server=StubServer())
        except Exception:
            transport.close()
            continue


def start_sftp_server(
    root: str,
    host: str = "127.0.0.1",
    port: int = 0,
) -> tuple[threading.Thread, int, RSAKey, threading.Event, socket.socket]:
    """Start an in-process SFTP server in a background thread.

    Creates the HOME directory under ``root``.

    :returns: ``(thread, actual_port, host_key, stop_event, server_socket)``
    """
    os.makedirs(os.path.join(root, HOME.lstrip("/")), exist_ok=True)
    host_key = RSAKey.generate(2048)

    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server_socket.bind((host, port))
    server_socket.listen(5)
    actual_port = server_socket.getsockname()[1]

    stop_event = threading.Event()

    thread = threading.Thread(
        target=_accept_connections,
        args=(server_socket, host_key, root, stop_event),
        daemon=True,
    )
    thread.start()

    return thread, actual_port, host_key, stop_event, server_socket


def stop_sftp_server(
    thread: threading.Thread,
    stop_event: threading.Event,
    server_socket: socket.socket,
) -> None:
    """Stop the SFTP server thread and clean up resources."""
    stop_event.set()
    with contextlib.suppress(OSError):
        server_socket.close()
    thread.join(timeout=5)
