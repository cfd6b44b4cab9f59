"""
Relay routes: pass-through to a Roku for clients that cannot reach port 8060 themselves
"""

import ipaddress
import logging

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from ..discovery.address_space import is_valid_ip
from ..errors import classify_exception, describe
from ..http_helper import RELAY_ERROR_HEADER, DirectTransport

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


def create_relay_routes(transport: DirectTransport, timeout: float = 5.0, private_only: bool = True):
    """Create the relay route; method and path are forwarded verbatim"""
    router = APIRouter(prefix="/api/relay", tags=["relay"])

    @router.api_route("/{address}/{path:path}", methods=["GET", "POST"])
    async def relay(address: str, path: str, request: Request):
        if not is_valid_ip(address):
            raise HTTPException(status_code=400, detail="Invalid IP address format")
        if private_only and not ipaddress.IPv4Address(address).is_private:
            raise HTTPException(status_code=403, detail="Relay only forwards to private network addresses")

        logger.debug(f"Relaying {request.method} /{path} to {address}")
        try:
            upstream = await transport.request(request.method, address, path, timeout)
        except Exception as e:
            cause = classify_exception(e)
            logger.warning(f"Relay to {address} failed: {cause.value} ({e})")
            return JSONResponse(
                status_code=502,
                content={"success": False, "cause": cause.value, "error": describe(cause, address)},
                headers={RELAY_ERROR_HEADER: cause.value, **NO_CACHE_HEADERS},
            )

        return Response(content=upstream.body, status_code=upstream.status, headers=NO_CACHE_HEADERS)

    return router
