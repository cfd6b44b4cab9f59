"""
Long-running services built on the discovery and command modules
"""

from .remote_engine import RemoteEngine

__all__ = ['RemoteEngine']
