"""
REST API module for Discord MultiHost.

This module exposes the session coordinator over HTTP and WebSocket.
"""

from .app import create_app

__all__ = ["create_app"]
