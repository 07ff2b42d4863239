"""Launch controller: configuration, root location, mode dispatch and execution."""

from .environment import LaunchEnvironment, split_command_line
from .controller import Launcher, launch_mode, manifest_names
from .host import ExecutionHost
from .root import locate_root

__all__ = [
    "ExecutionHost",
    "LaunchEnvironment",
    "Launcher",
    "launch_mode",
    "locate_root",
    "manifest_names",
    "split_command_line",
]
