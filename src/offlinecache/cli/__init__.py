"""
OfflineCache CLI Package

Typer-based command-line interface for inspecting and managing a
disk-backed cache.
"""

from offlinecache import __version__

__all__ = ['__version__']
