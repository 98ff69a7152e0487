"""Shell adapters — system commands and privilege probes."""

from admintx.adapters.shell.command import ShellCommand
from admintx.adapters.shell.privileges import elevation_available, is_root, sudo_available

__all__ = [
    "ShellCommand",
    "elevation_available",
    "is_root",
    "sudo_available",
]
