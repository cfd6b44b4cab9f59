"""
API module for the local HTTP control and relay endpoints
"""

from .main_api import RemoteAPI

__all__ = ['RemoteAPI']
