"""
HTTP status and control API
"""

from .server import APIServer

__all__ = ["APIServer"]
