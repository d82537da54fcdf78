"""Session implementations."""

from remote_fs.sessions._paramiko import HostKeyPolicy, ParamikoSession, load_private_key

__all__ = ["HostKeyPolicy", "ParamikoSession", "load_private_key"]
