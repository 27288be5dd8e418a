"""
Noteflow - notes and tasks with labels and file attachments.
This package implements a small note- and task-management backend whose
records live in JSON documents on local disk, exposed through an MCP server.

Every operation reads the whole collection, mutates it in memory and writes
it back; there is no database engine.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("noteflow")
except PackageNotFoundError:
    __version__ = "0.3.0"
