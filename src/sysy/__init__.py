"""SysY semantic validation, quick fixes and language server."""

__version__ = "0.1.0"
