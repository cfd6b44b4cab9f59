"""
Command translation and dispatch
"""

from .dispatcher import CommandDispatcher, CommandJob, CommandResult
from .pairing import PairingHandshake
from .translator import CommandToken, supported_commands, translate

__all__ = ['CommandDispatcher', 'CommandJob', 'CommandResult', 'PairingHandshake',
           'CommandToken', 'supported_commands', 'translate']
