"""
Bridge service for the managed cloud backends.
"""

from .app import create_app

__all__ = ["create_app"]
