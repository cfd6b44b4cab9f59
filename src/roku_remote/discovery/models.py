"""
Discovery data structures and models
"""

import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import ErrorCause


@dataclass(frozen=True)
class DeviceCapabilities:
    """Capability metadata parsed from the device's device-info document"""
    model_name: str = "Unknown"
    model_number: str = "Unknown"
    is_display: bool = False
    requires_pairing: bool = False
    friendly_name: Optional[str] = None
    software_version: Optional[str] = None
    serial_number: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DeviceCapabilities":
        if not data:
            return cls()
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass(frozen=True)
class DeviceRecord:
    """The currently known Roku device. Replaced wholesale, never mutated"""
    address: str
    capabilities: DeviceCapabilities = field(default_factory=DeviceCapabilities)
    last_verified_at: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "capabilities": self.capabilities.to_dict(),
            "last_verified_at": self.last_verified_at,
        }


@dataclass(frozen=True)
class CandidateAddress:
    """A host to probe plus the subnet prefix it came from"""
    host: str
    prefix: str


@dataclass
class ProbeResult:
    """Outcome of a single probe"""
    address: str
    success: bool
    capabilities: Optional[DeviceCapabilities] = None
    error_cause: Optional[ErrorCause] = None
    error: Optional[str] = None


class DiscoveryStatus(str, Enum):
    FOUND = "found"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"  # manual address did not answer like a Roku


@dataclass
class DiscoveryResult:
    """Results from discovery operations"""
    status: DiscoveryStatus
    device: Optional[DeviceRecord] = None
    cause: Optional[ErrorCause] = None
    error: Optional[str] = None
    method: str = "scan"  # "cached", "scan", "manual"
    probes_issued: int = 0
    batches_scanned: int = 0
    duration_seconds: float = 0.0
    prefixes: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.status == DiscoveryStatus.FOUND

    @property
    def address(self) -> Optional[str]:
        return self.device.address if self.device else None
