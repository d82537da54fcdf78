"""Shared enums and type aliases used throughout remote_fs."""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from datetime import datetime  # noqa: TC003
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from remote_fs._path import RemotePath


class OpenOption(enum.Enum):
    """How a file is opened by ``new_byte_channel``."""

    READ = "read"
    WRITE = "write"
    APPEND = "append"
    TRUNCATE_EXISTING = "truncate_existing"
    CREATE = "create"
    CREATE_NEW = "create_new"


class AccessMode(enum.Enum):
    """Access checked by ``check_access``."""

    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"


PathFilter = Callable[["RemotePath"], bool]
Options = Mapping[str, object]
Timestamp = Union[datetime, int, float]  # noqa: UP007
