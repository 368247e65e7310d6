from .config import HostConfig
from .server import HostServer

__all__ = ["HostConfig", "HostServer"]
