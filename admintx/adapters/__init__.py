"""Adapters — bindings between the engine and the host system.

Public re-exports for convenient access.
"""

from admintx.adapters.shell import ShellCommand, elevation_available

__all__ = [
    "ShellCommand",
    "elevation_available",
]
