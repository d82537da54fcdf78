"""Hierarchical filesystem API served by a single persistent SFTP session."""

from remote_fs._attributes import (
    AttributeView,
    BasicFileAttributeView,
    FileAttributes,
    PosixFileAttributeView,
    PosixPermission,
    permissions_from_string,
    permissions_to_string,
)
from remote_fs._capabilities import Capability, CapabilitySet
from remote_fs._config import WORKING_DIRECTORY, ConnectionIdentity, SessionConfig
from remote_fs._errors import (
    AlreadyClosed,
    CapabilityNotSupported,
    ConfigurationError,
    NotFound,
    PermissionDenied,
    ProviderMismatch,
    RemoteFSError,
    RemoteProtocolError,
)
from remote_fs._filesystem import RemoteFileSystem
from remote_fs._listing import DirectoryStream
from remote_fs._path import RemotePath
from remote_fs._registry import Registry, register_session_type
from remote_fs._session import DirEntry, RemoteStat, Session
from remote_fs._types import AccessMode, OpenOption

__version__ = "0.1.0"

__all__ = [
    # Core
    "Registry",
    "RemoteFileSystem",
    "Session",
    "register_session_type",
    # Paths & listing
    "RemotePath",
    "DirectoryStream",
    "OpenOption",
    "AccessMode",
    # Attributes
    "FileAttributes",
    "AttributeView",
    "BasicFileAttributeView",
    "PosixFileAttributeView",
    "PosixPermission",
    "permissions_from_string",
    "permissions_to_string",
    "RemoteStat",
    "DirEntry",
    # Capabilities
    "Capability",
    "CapabilitySet",
    # Config
    "ConnectionIdentity",
    "SessionConfig",
    "WORKING_DIRECTORY",
    # Errors
    "RemoteFSError",
    "NotFound",
    "AlreadyClosed",
    "CapabilityNotSupported",
    "ConfigurationError",
    "ProviderMismatch",
    "RemoteProtocolError",
    "PermissionDenied",
    # Version
    "__version__",
]
