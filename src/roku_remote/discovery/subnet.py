"""
Best-effort detection of the local /24 subnet, used only to order the scan
"""

import asyncio
import ipaddress
import logging
import socket
from typing import Optional

from .address_space import prefix_of

logger = logging.getLogger(__name__)

# Any routable address works: a UDP connect sends no packet
PROBE_TARGET = ("8.8.8.8", 80)


def _usable(ip: str) -> bool:
    try:
        addr = ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    return not (addr.is_loopback or addr.is_link_local or addr.is_unspecified)


def _local_ip_via_udp() -> Optional[str]:
    """Ask the OS which interface it would route through"""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
        s.connect(PROBE_TARGET)
        return s.getsockname()[0]


def _local_ip_via_hostname() -> Optional[str]:
    return socket.gethostbyname(socket.gethostname())


def detect_local_ip() -> Optional[str]:
    """Blocking lookup of this host's LAN address"""
    for method in (_local_ip_via_udp, _local_ip_via_hostname):
        try:
            ip = method()
        except OSError as e:
            logger.debug(f"Local IP lookup via {method.__name__} failed: {e}")
            continue
        if ip and _usable(ip):
            return ip
        logger.debug(f"Local IP lookup via {method.__name__} returned unusable {ip}")
    return None


async def detect_local_subnet(timeout: float = 1.0) -> Optional[str]:
    """
    Return the local /24 prefix (e.g. '192.168.1') or None.
    Never raises and never waits longer than `timeout`.
    """
    loop = asyncio.get_running_loop()
    try:
        ip = await asyncio.wait_for(loop.run_in_executor(None, detect_local_ip), timeout)
    except asyncio.TimeoutError:
        logger.info(f"Local subnet detection timed out after {timeout}s")
        return None
    except Exception as e:
        logger.warning(f"Local subnet detection failed: {e}")
        return None

    if not ip:
        logger.info("Local subnet not detected - scanning fallback prefixes only")
        return None

    prefix = prefix_of(ip)
    logger.info(f"Detected local IP {ip}, scanning {prefix}.0/24 first")
    return prefix
