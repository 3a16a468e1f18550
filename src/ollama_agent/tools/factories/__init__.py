"""Public tool factory exports grouped by domain."""

from .containers import register_container_tools
from .database import register_database_tools
from .fs import register_fs_tools
from .packages import register_package_tools
from .shell import register_shell_tools
from .vcs import register_vcs_tools
from .web import register_web_tools

__all__ = [
    "register_container_tools",
    "register_database_tools",
    "register_fs_tools",
    "register_package_tools",
    "register_shell_tools",
    "register_vcs_tools",
    "register_web_tools",
]
