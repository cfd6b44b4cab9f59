"""
Device and command API routes
"""

from fastapi import APIRouter, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel
from typing import List, Optional
import logging
from datetime import datetime, timezone

from ..commands.translator import supported_commands
from ..discovery.models import DeviceRecord, DiscoveryResult, DiscoveryStatus
from ..errors import ErrorCause

logger = logging.getLogger(__name__)

CAUSE_STATUS = {
    ErrorCause.UNSUPPORTED: 400,
    ErrorCause.AUTHORIZATION_REQUIRED: 403,
    ErrorCause.EXHAUSTED: 404,
    ErrorCause.CANCELLED: 409,
    ErrorCause.PROTOCOL_VIOLATION: 502,
    ErrorCause.UNREACHABLE: 503,
}


# Request models
class ManualAddressRequest(BaseModel):
    address: str


# Response models
class DeviceResponse(BaseModel):
    address: str
    model_name: str
    model_number: str
    is_display: bool
    requires_pairing: bool
    friendly_name: Optional[str] = None
    software_version: Optional[str] = None
    last_verified_at: datetime


class DiscoveryResponse(BaseModel):
    status: str
    method: str
    device: Optional[DeviceResponse] = None
    cause: Optional[str] = None
    error: Optional[str] = None
    probes_issued: int
    duration_seconds: float


class CommandResponse(BaseModel):
    command: str
    success: bool
    address: Optional[str] = None
    token: Optional[str] = None
    pairing_requested: bool = False
    timestamp: datetime


def _device_response(record: DeviceRecord) -> DeviceResponse:
    caps = record.capabilities
    return DeviceResponse(
        address=record.address,
        model_name=caps.model_name,
        model_number=caps.model_number,
        is_display=caps.is_display,
        requires_pairing=caps.requires_pairing,
        friendly_name=caps.friendly_name,
        software_version=caps.software_version,
        last_verified_at=datetime.fromtimestamp(record.last_verified_at, tz=timezone.utc),
    )


def _discovery_response(result: DiscoveryResult) -> DiscoveryResponse:
    return DiscoveryResponse(
        status=result.status.value,
        method=result.method,
        device=_device_response(result.device) if result.device else None,
        cause=result.cause.value if result.cause else None,
        error=result.error,
        probes_issued=result.probes_issued,
        duration_seconds=round(result.duration_seconds, 3),
    )


def create_device_routes(engine):
    """Create device discovery and command routes"""
    router = APIRouter(prefix="/api", tags=["device"])

    @router.get("/device", response_model=DeviceResponse)
    async def get_device():
        """Currently selected Roku"""
        record = engine.get_current_device()
        if record is None:
            raise HTTPException(status_code=404, detail="No Roku device IP set")
        return _device_response(record)

    @router.post("/device/discover", response_model=DiscoveryResponse)
    async def discover_device():
        """Stored address first, then a subnet scan; 404 means enter the address manually"""
        result = await engine.discover()
        if result.status != DiscoveryStatus.FOUND:
            raise HTTPException(status_code=CAUSE_STATUS.get(result.cause, 404),
                                detail=jsonable_encoder(_discovery_response(result)))
        return _discovery_response(result)

    @router.post("/device", response_model=DiscoveryResponse)
    async def set_device(request: ManualAddressRequest):
        """Manual address entry"""
        try:
            result = await engine.connect_manual(request.address)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if result.status != DiscoveryStatus.FOUND:
            raise HTTPException(status_code=CAUSE_STATUS.get(result.cause, 503),
                                detail=jsonable_encoder(_discovery_response(result)))
        return _discovery_response(result)

    @router.delete("/device")
    async def forget_device():
        await engine.forget()
        return {"success": True, "timestamp": datetime.now(timezone.utc)}

    @router.get("/commands", response_model=List[str])
    async def list_commands():
        return supported_commands()

    @router.post("/commands/{command}", response_model=CommandResponse)
    async def send_command(command: str):
        """Queue a command and wait until it has been sent"""
        result = await engine.send_command(command)
        if not result.success:
            logger.info(f"Command {command} failed: {result.cause.value if result.cause else 'unknown'}")
            raise HTTPException(status_code=CAUSE_STATUS.get(result.cause, 500), detail=result.to_dict())
        return CommandResponse(
            command=result.command,
            success=True,
            address=result.address,
            token=result.token,
            timestamp=datetime.now(timezone.utc),
        )

    return router
