"""
Roku Remote Local Server - finds a Roku on the LAN and relays remote-control commands to it
"""

__version__ = "1.0.0"
