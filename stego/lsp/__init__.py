"""
LSP server for live manuscript diagnostics in the editor.
"""

from .server import create_server, start_server

__all__ = ["create_server", "start_server"]
