"""A small Unix-style file system with a redo log, an image builder and simple tools."""

__version__ = "0.1.0"